"""Tests for tag resolve-or-create."""

import pytest
from unittest.mock import MagicMock
from tasktracker.models.tag import Tag
from tasktracker.repositories.base import TagRepository
from tasktracker.services.tag_resolver import TagResolver
from tasktracker.utils.errors import StorageError, TagConflictError


class RacingTagRepository(TagRepository):
    """Tag repository where another writer wins the insert race for some names."""

    def __init__(self, raced_names=(), visible_after=1):
        self.rows = {}
        self.raced_names = set(raced_names)
        self.visible_after = visible_after
        self.lookups = 0
        self.created = []

    def find_by_names(self, names):
        self.lookups += 1
        names = set(names)
        found = [tag for name, tag in self.rows.items() if name in names]
        # Rows written by the competing request show up after a few reads
        if self.lookups > self.visible_after:
            for name in names & self.raced_names:
                found.append(Tag(id=900 + len(name), name=name))
        return found

    def create(self, name):
        if name in self.raced_names:
            raise TagConflictError(name)
        tag = Tag(id=len(self.rows) + 1, name=name)
        self.rows[name] = tag
        self.created.append(name)
        return tag


@pytest.mark.unit
def test_resolve_creates_missing_tags(storage):
    resolver = TagResolver(storage.tags)

    tags = resolver.resolve_or_create(["urgent", "backend"])

    assert [t.name for t in tags] == ["backend", "urgent"]
    assert all(t.id is not None for t in tags)


@pytest.mark.unit
def test_resolve_deduplicates_names(storage):
    tags = TagResolver(storage.tags).resolve_or_create(["urgent", "urgent", "backend"])

    assert len(tags) == 2
    assert len(storage.tables.tags) == 2


@pytest.mark.unit
def test_resolve_reuses_existing_tags(storage):
    existing = storage.tags.create("backend")

    tags = TagResolver(storage.tags).resolve_or_create({"backend", "api"})

    assert {t.name for t in tags} == {"backend", "api"}
    assert next(t for t in tags if t.name == "backend").id == existing.id
    assert len(storage.tables.tags) == 2


@pytest.mark.unit
def test_resolve_is_case_sensitive(storage):
    tags = TagResolver(storage.tags).resolve_or_create({"Backend", "backend"})

    assert len(tags) == 2


@pytest.mark.unit
def test_resolve_empty_input_does_not_touch_storage():
    repo = MagicMock(spec=TagRepository)

    assert TagResolver(repo).resolve_or_create([]) == []
    repo.find_by_names.assert_not_called()
    repo.create.assert_not_called()


@pytest.mark.unit
def test_resolve_rereads_after_conflict():
    """A name created concurrently is looked up again instead of failing."""
    repo = RacingTagRepository(raced_names={"urgent"}, visible_after=1)

    tags = TagResolver(repo, conflict_retries=3).resolve_or_create({"urgent", "backend"})

    assert [t.name for t in tags] == ["backend", "urgent"]
    assert repo.created == ["backend"]


@pytest.mark.unit
def test_resolve_retries_lookup_until_visible():
    repo = RacingTagRepository(raced_names={"urgent"}, visible_after=3)

    tags = TagResolver(repo, conflict_retries=3).resolve_or_create({"urgent"})

    assert tags[0].name == "urgent"
    assert repo.lookups == 4


@pytest.mark.unit
def test_resolve_gives_up_after_retries():
    repo = RacingTagRepository(raced_names={"urgent"}, visible_after=100)

    with pytest.raises(StorageError):
        TagResolver(repo, conflict_retries=2).resolve_or_create({"urgent"})

    # One batch lookup plus two re-reads
    assert repo.lookups == 3
