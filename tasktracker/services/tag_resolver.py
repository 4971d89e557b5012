"""Tag resolution - map requested tag names to tag rows, creating missing ones."""

from typing import Iterable, List, Optional

from tasktracker.models.tag import Tag
from tasktracker.repositories.base import TagRepository
from tasktracker.utils.app_config import AppConfig
from tasktracker.utils.errors import StorageError, TagConflictError
from tasktracker.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)


class TagResolver:
    """
    Resolve-or-create for tags.

    Existing tags are found with one batch lookup. Missing names are created
    one by one; if a concurrent request created the same name first, the
    unique constraint rejects our insert and the name is looked up again.
    """

    def __init__(self, tags: TagRepository, conflict_retries: Optional[int] = None):
        self.tags = tags
        self.conflict_retries = conflict_retries if conflict_retries is not None else AppConfig.TAG_CONFLICT_RETRIES

    def resolve_or_create(self, names: Iterable[str]) -> List[Tag]:
        """Return exactly one tag per distinct name, ordered by name."""
        wanted = set(names)
        if not wanted:
            return []

        resolved = {tag.name: tag for tag in self.tags.find_by_names(wanted)}

        for name in sorted(wanted - resolved.keys()):
            try:
                resolved[name] = self.tags.create(name)
                logger.info("Tag created", tag_name=name, tag_id=resolved[name].id)
            except TagConflictError:
                logger.info("Tag created concurrently, re-reading", tag_name=name)
                resolved[name] = self._lookup_after_conflict(name)

        return [resolved[name] for name in sorted(resolved)]

    def _lookup_after_conflict(self, name: str) -> Tag:
        for attempt in range(1, self.conflict_retries + 1):
            matches = self.tags.find_by_names({name})
            if matches:
                return matches[0]
            logger.warning("Conflicting tag not visible yet", tag_name=name, attempt=attempt)
        raise StorageError(f"Tag '{name}' rejected as duplicate but not found after {self.conflict_retries} lookups")
