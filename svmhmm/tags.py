"""Interning of tag strings to dense integer IDs.

Tags are compared millions of times inside Viterbi and when building joint
feature vectors, so every tag seen while reading a corpus is mapped to a small
integer once. The registry is an explicit object rather than module state:
each training run (or cross-validation fold) owns its own instance.

The lifecycle is single-writer while the corpus is loaded, then read-only.
`freeze` marks the end of the loading phase; after that, unseen tags are
rejected because the joint feature layout depends on the tag count.
"""
from __future__ import annotations
from typing import Dict, Iterable, List


class TagRegistry:
    """
    Bijective mapping between tag strings and IDs in `0..get_num_tags()-1`.

    IDs are assigned in first-seen order and are never reassigned or reused.
    No locking is done; do not share a registry between concurrent runs.
    """

    def __init__(self) -> None:
        self._ids: Dict[str, int] = {}
        self._tags: List[str] = []
        self._frozen = False

    @classmethod
    def from_tags(cls, tags: Iterable[str]) -> "TagRegistry":
        """Rebuilds a registry whose IDs follow the order of `tags`."""
        registry = cls()
        for tag in tags:
            if tag in registry._ids:
                raise ValueError(f"Duplicate tag '{tag}' in tag list.")
            registry.register_tag(tag)
        return registry

    def register_tag(self, tag: str) -> int:
        """
        Returns the ID of `tag`, assigning the next free ID on first sight.

        Raises:
            RuntimeError: If the registry is frozen and `tag` is unknown.
        """
        tag_id = self._ids.get(tag)
        if tag_id is not None:
            return tag_id
        if self._frozen:
            raise RuntimeError(
                f"Cannot register new tag '{tag}': the tag set is frozen for training."
            )
        tag_id = len(self._tags)
        self._ids[tag] = tag_id
        self._tags.append(tag)
        return tag_id

    def get_num_tags(self) -> int:
        return len(self._tags)

    def get_tag_by_id(self, tag_id: int) -> str:
        if tag_id < 0 or tag_id >= len(self._tags):
            raise ValueError(
                f"Unknown tag ID {tag_id}: {len(self._tags)} tags are registered."
            )
        return self._tags[tag_id]

    def get_id(self, tag: str) -> int:
        """Looks up a tag without registering it."""
        try:
            return self._ids[tag]
        except KeyError:
            raise KeyError(f"Tag '{tag}' has not been registered.")

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def tags(self) -> List[str]:
        return list(self._tags)

    def __len__(self) -> int:
        return len(self._tags)

    def __contains__(self, tag: object) -> bool:
        return tag in self._ids

    def __repr__(self) -> str:
        return f"TagRegistry({self._tags!r})"
