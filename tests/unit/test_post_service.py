"""
Tests for PostService over in-memory repositories.

Covers create/update/delete/restore ordering of hooks, slug collision
retries, tag syncing, listing and bulk actions.
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from postflow.core.ports.db import NotFoundError, PersistenceError, UniqueConstraintError
from postflow.core.services.events import LifecycleSignal, PostPublished, PostStatusChanged
from postflow.rules.models import Rules
from tests.fakes import FIXED_NOW, Stack, build_stack, make_post


class TestCreate:
    def test_derives_fields(self, stack: Stack) -> None:
        post = stack.service.create(make_post())

        assert post.id == 1
        assert post.slug == "hello-world"
        assert "<h1>Intro</h1>" in post.content_html
        assert post.excerpt.startswith("Intro Some bold text")
        assert post.reading_time == 1
        assert post.meta_title == "Hello World!!"
        assert post.og_type == "article"
        assert post.created_at == FIXED_NOW
        assert post.published_at is None

    def test_derived_fields_persisted(self, stack: Stack) -> None:
        created = stack.service.create(make_post())
        stored = stack.posts.get_by_id(created.id)
        assert stored.excerpt == created.excerpt
        assert stored.content_html == created.content_html

    def test_duplicate_titles_get_suffixes(self, stack: Stack) -> None:
        slugs = [stack.service.create(make_post()).slug for _ in range(3)]
        assert slugs == ["hello-world", "hello-world-1", "hello-world-2"]

    def test_explicit_slug_kept(self, stack: Stack) -> None:
        post = stack.service.create(make_post(slug="custom-slug"))
        assert post.slug == "custom-slug"

    def test_published_on_create_stamps_published_at(self, stack: Stack) -> None:
        post = stack.service.create(make_post(status="published"))
        assert post.published_at == FIXED_NOW

    def test_create_dispatches_no_events(self, stack: Stack) -> None:
        """Events fire on update only; a post created published is not announced."""
        stack.service.create(make_post(status="published"))
        assert not stack.events.dispatched
        assert stack.queue.size("notifications") == 0

    def test_created_signal(self, stack: Stack) -> None:
        seen = []
        stack.signals.subscribe(LifecycleSignal.CREATED, lambda s, p: seen.append(p.id))
        post = stack.service.create(make_post())
        assert seen == [post.id]

    def test_rejects_existing_id(self, stack: Stack) -> None:
        with pytest.raises(ValueError):
            stack.service.create(make_post(id=5))

    def test_invalidates_cache(self, stack: Stack) -> None:
        stack.cache.remember_posts("index", lambda: ["cached"])
        stack.cache.remember_static("sitemap", lambda: "<xml/>")
        assert stack.cache_store.keys()

        stack.service.create(make_post())
        assert stack.cache_store.keys() == []


class TestSlugRetry:
    def test_collision_on_save_retries_next_suffix(self, stack: Stack) -> None:
        """A concurrent writer taking the slug between check and save is absorbed."""
        stack.posts.reject_slugs = ["hello-world"]
        post = stack.service.create(make_post())
        assert post.slug == "hello-world-1"

    def test_gives_up_after_max_attempts(self) -> None:
        rules = Rules()
        rules.slug.max_attempts = 2
        stack = build_stack(rules)
        stack.posts.reject_slugs = ["hello-world", "hello-world-1"]

        with pytest.raises(PersistenceError) as exc:
            stack.service.create(make_post())
        assert "hello-world, hello-world-1" in str(exc.value)


class TestTags:
    def test_string_tags_split_and_deduplicated(self, stack: Stack) -> None:
        post = stack.service.create(make_post(), tags="Python, web ,python,,")
        assert [t.slug for t in post.tags] == ["python", "web"]
        assert stack.tags.links[post.id] == [t.id for t in post.tags]

    def test_list_tags(self, stack: Stack) -> None:
        post = stack.service.create(make_post(), tags=["Django", "ORM"])
        fetched = stack.service.get(post.id)
        assert [t.name for t in fetched.tags] == ["Django", "ORM"]

    def test_update_replaces_tags(self, stack: Stack) -> None:
        post = stack.service.create(make_post(), tags=["a", "b"])
        stack.service.update(post.id, {}, tags=["c"])
        assert [t.name for t in stack.service.get(post.id).tags] == ["c"]

    def test_untagged_update_keeps_tags(self, stack: Stack) -> None:
        post = stack.service.create(make_post(), tags=["a"])
        stack.service.update(post.id, {"title": "Renamed"})
        assert [t.name for t in stack.service.get(post.id).tags] == ["a"]


class TestUpdate:
    def test_publishing_dispatches_both_events(self, stack: Stack) -> None:
        post = stack.service.create(make_post())
        updated = stack.service.update(post.id, {"status": "published"})

        assert updated.published_at == FIXED_NOW
        kinds = [type(e) for e in stack.events.dispatched]
        assert kinds == [PostStatusChanged, PostPublished]

    def test_republish_keeps_first_published_at(self, stack: Stack) -> None:
        post = stack.service.create(make_post())
        stack.service.update(post.id, {"status": "published"})
        stack.clock.advance(3600)
        stack.service.update(post.id, {"status": "archived"})
        again = stack.service.update(post.id, {"status": "published"})

        assert again.published_at == FIXED_NOW

    def test_no_status_change_no_events(self, stack: Stack) -> None:
        post = stack.service.create(make_post())
        stack.service.update(post.id, {"title": "Another"})
        assert not stack.events.dispatched

    def test_title_change_keeps_slug(self, stack: Stack) -> None:
        post = stack.service.create(make_post())
        updated = stack.service.update(post.id, {"title": "Brand New"})
        assert updated.slug == "hello-world"

    def test_title_change_with_blank_slug_regenerates(self, stack: Stack) -> None:
        post = stack.service.create(make_post())
        updated = stack.service.update(post.id, {"title": "Brand New", "slug": ""})
        assert updated.slug == "brand-new"

    def test_blank_slug_without_title_change_keeps_slug(self, stack: Stack) -> None:
        post = stack.service.create(make_post())
        updated = stack.service.update(post.id, {"slug": ""})
        assert updated.slug == "hello-world"

    def test_slug_change_to_taken_slug_is_suffixed(self, stack: Stack) -> None:
        stack.service.create(make_post(title="First"))
        second = stack.service.create(make_post(title="Second"))
        updated = stack.service.update(second.id, {"slug": "first"})
        assert updated.slug == "first-1"

    def test_content_change_rerenders(self, stack: Stack) -> None:
        post = stack.service.create(make_post())
        updated = stack.service.update(post.id, {"content": "word " * 450})
        assert updated.content_html.startswith("<p>word")
        assert updated.reading_time == 3

    def test_updated_at_moves(self, stack: Stack) -> None:
        post = stack.service.create(make_post())
        stack.clock.advance(60)
        updated = stack.service.update(post.id, {"title": "Later"})
        assert updated.updated_at > updated.created_at

    def test_missing_post(self, stack: Stack) -> None:
        with pytest.raises(NotFoundError):
            stack.service.update(404, {"title": "x"})

    def test_event_snapshot_isolated_from_later_changes(self, stack: Stack) -> None:
        post = stack.service.create(make_post())
        updated = stack.service.update(post.id, {"status": "published"})
        updated.title = "Mutated after dispatch"
        assert stack.events.dispatched[-1].post.title == "Hello World!!"


class TestDeleteRestore:
    def test_delete_hides_post(self, stack: Stack) -> None:
        post = stack.service.create(make_post())
        stack.service.delete(post.id)

        with pytest.raises(NotFoundError):
            stack.service.get(post.id)
        assert stack.posts.get_by_id(post.id, include_deleted=True).deleted_at == FIXED_NOW

    def test_delete_runs_cleanup_and_signals(self, stack: Stack) -> None:
        seen = []
        for signal in (LifecycleSignal.DELETING, LifecycleSignal.DELETED):
            stack.signals.subscribe(signal, lambda s, p: seen.append(s))
        post = stack.service.create(make_post(), tags=["a"])

        stack.service.delete(post.id)

        assert seen == [LifecycleSignal.DELETING, LifecycleSignal.DELETED]
        assert stack.related.calls == [
            "list_images",
            "soft_delete_comments",
            "delete_views",
            "detach_tags",
            "detach_likes",
        ]
        assert post.id not in stack.tags.links

    def test_delete_missing(self, stack: Stack) -> None:
        with pytest.raises(NotFoundError):
            stack.service.delete(99)

    def test_deleted_slug_is_reusable(self, stack: Stack) -> None:
        first = stack.service.create(make_post())
        stack.service.delete(first.id)
        second = stack.service.create(make_post())
        assert second.slug == "hello-world"

    def test_restore(self, stack: Stack) -> None:
        seen = []
        stack.signals.subscribe(LifecycleSignal.RESTORED, lambda s, p: seen.append(p.id))
        post = stack.service.create(make_post())
        stack.service.delete(post.id)

        restored = stack.service.restore(post.id)

        assert restored.deleted_at is None
        assert stack.service.get(post.id).slug == "hello-world"
        assert seen == [post.id]

    def test_restore_live_post_is_noop(self, stack: Stack) -> None:
        post = stack.service.create(make_post())
        assert stack.service.restore(post.id).id == post.id

    def test_restore_into_taken_slug(self, stack: Stack) -> None:
        first = stack.service.create(make_post())
        stack.service.delete(first.id)
        stack.service.create(make_post())

        with pytest.raises(UniqueConstraintError):
            stack.service.restore(first.id)

    def test_restore_missing(self, stack: Stack) -> None:
        with pytest.raises(NotFoundError):
            stack.service.restore(123)


class TestList:
    def test_pagination(self, stack: Stack) -> None:
        for i in range(5):
            stack.service.create(make_post(title=f"Post {i}"))
            stack.clock.advance(1)

        page = stack.service.list(page=2, per_page=2)
        assert page.total == 5
        assert page.pages == 3
        assert [p.title for p in page.items] == ["Post 2", "Post 1"]

    def test_blank_filters_ignored(self, stack: Stack) -> None:
        stack.service.create(make_post())
        page = stack.service.list({"status": "", "search": None})
        assert page.total == 1

    def test_filters(self, stack: Stack) -> None:
        stack.service.create(make_post(title="Draft one"))
        stack.service.create(make_post(title="Live one", status="published"))
        page = stack.service.list({"status": "published"})
        assert [p.title for p in page.items] == ["Live one"]

    def test_get_by_slug(self, stack: Stack) -> None:
        post = stack.service.create(make_post(), tags=["t"])
        fetched = stack.service.get_by_slug("hello-world")
        assert fetched.id == post.id
        assert [t.name for t in fetched.tags] == ["t"]

        with pytest.raises(NotFoundError):
            stack.service.get_by_slug("nope")


class TestCachedReads:
    def test_list_served_from_cache_until_update(self, stack: Stack) -> None:
        post = stack.service.create(make_post())
        assert [p.title for p in stack.service.list().items] == ["Hello World!!"]

        # Out-of-band change: invisible until a write invalidates the posts group
        stack.posts.rows[post.id].title = "Changed behind the service"
        assert [p.title for p in stack.service.list().items] == ["Hello World!!"]

        stack.service.update(post.id, {"title": "Edited"})
        assert [p.title for p in stack.service.list().items] == ["Edited"]

    def test_list_fresh_after_delete(self, stack: Stack) -> None:
        post = stack.service.create(make_post())
        assert stack.service.list().total == 1

        stack.service.delete(post.id)
        assert stack.service.list().total == 0

    def test_get_by_slug_cached(self, stack: Stack) -> None:
        post = stack.service.create(make_post())
        stack.service.get_by_slug("hello-world")
        stack.posts.rows[post.id].title = "Changed behind the service"

        assert stack.service.get_by_slug("hello-world").title == "Hello World!!"
        assert any(":posts:slug:" in key for key in stack.cache_store.keys())

    def test_cached_page_not_shared_with_callers(self, stack: Stack) -> None:
        stack.service.create(make_post())
        stack.service.list().items[0].title = "Mutated by caller"
        assert stack.service.list().items[0].title == "Hello World!!"

    def test_bulk_action_refreshes_list(self, stack: Stack) -> None:
        post = stack.service.create(make_post())
        assert stack.service.list({"status": "published"}).total == 0

        stack.service.bulk_action("publish", [post.id])
        assert stack.service.list({"status": "published"}).total == 1

    def test_cache_disabled_reads_through(self) -> None:
        rules = Rules()
        rules.cache.enabled = False
        stack = build_stack(rules)
        post = stack.service.create(make_post())
        stack.service.list()

        stack.posts.rows[post.id].title = "Changed"
        assert stack.service.list().items[0].title == "Changed"
        assert stack.cache_store.keys() == []


class TestPublished:
    def test_newest_publication_first(self, stack: Stack) -> None:
        earlier = datetime(2025, 1, 1, tzinfo=UTC)
        older = make_post(title="Older", status="published", published_at=earlier)
        stack.service.create(older)
        stack.service.create(make_post(title="Newer", status="published"))
        stack.service.create(make_post(title="Draft"))

        page = stack.service.published()
        assert [p.title for p in page.items] == ["Newer", "Older"]
        assert page.total == 2

    def test_tag_filter(self, stack: Stack) -> None:
        stack.service.create(make_post(title="Tagged", status="published"), tags="python")
        stack.service.create(make_post(title="Other", status="published"), tags="rust")

        page = stack.service.published(tag="python")
        assert [p.title for p in page.items] == ["Tagged"]
        assert [t.slug for t in page.items[0].tags] == ["python"]

    def test_published_list_refreshed_on_publish(self, stack: Stack) -> None:
        post = stack.service.create(make_post())
        assert stack.service.published().total == 0

        stack.service.update(post.id, {"status": "published"})
        assert [p.id for p in stack.service.published().items] == [post.id]


class TestBulkActions:
    def test_publish_sets_published_at_only_when_unset(self, stack: Stack) -> None:
        earlier = datetime(2025, 1, 1, tzinfo=UTC)
        a = stack.service.create(make_post(title="A"))
        b = stack.service.create(make_post(title="B", published_at=earlier, status="archived"))

        result = stack.service.bulk_action("publish", [a.id, b.id, 999])

        assert (result.success, result.failed) == (2, 1)
        assert stack.posts.get_by_id(a.id).published_at == FIXED_NOW
        assert stack.posts.get_by_id(b.id).published_at == earlier
        assert stack.posts.get_by_id(b.id).status == "published"

    def test_direct_updates_skip_events(self, stack: Stack) -> None:
        post = stack.service.create(make_post())
        stack.service.bulk_action("publish", [post.id])
        assert not stack.events.dispatched

    @pytest.mark.parametrize(
        "action,field,value",
        [
            ("draft", "status", "draft"),
            ("archive", "status", "archived"),
            ("feature", "is_featured", True),
            ("unfeature", "is_featured", False),
        ],
    )
    def test_direct_actions(self, stack: Stack, action, field, value) -> None:
        post = stack.service.create(make_post(status="published", is_featured=True))
        if action == "feature":
            stack.posts.rows[post.id].is_featured = False

        result = stack.service.bulk_action(action, [post.id])

        assert result.success == 1
        assert getattr(stack.posts.get_by_id(post.id), field) == value

    def test_delete_runs_full_path(self, stack: Stack) -> None:
        a = stack.service.create(make_post(title="A"))
        b = stack.service.create(make_post(title="B"))

        result = stack.service.bulk_action("delete", [a.id, b.id, 77])

        assert (result.success, result.failed) == (2, 1)
        assert stack.posts.get_by_id(a.id) is None
        assert stack.related.calls.count("detach_tags") == 2

    def test_duplicate_ids_counted_once(self, stack: Stack) -> None:
        post = stack.service.create(make_post())
        result = stack.service.bulk_action("archive", [post.id, post.id])
        assert (result.success, result.failed) == (1, 0)

    def test_unknown_action(self, stack: Stack) -> None:
        with pytest.raises(ValueError):
            stack.service.bulk_action("explode", [1])

    def test_bulk_invalidates_cache(self, stack: Stack) -> None:
        post = stack.service.create(make_post())
        stack.cache.remember_posts("index", lambda: ["cached"])
        stack.service.bulk_action("feature", [post.id])
        assert stack.cache_store.keys() == []
