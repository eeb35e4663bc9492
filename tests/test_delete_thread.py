import pytest

from firestore_threads import (
    Community,
    DeleteError,
    NotFound,
    PartialFailure,
    Thread,
    ThreadTreeService,
    User,
)

from .conftest import make_community, make_post, make_user


async def _reply(service, parent, author, text="reply"):
    return await service.add_comment_to_thread(parent.id, text, author.id)


async def _track(user: User, thread: Thread):
    """Record a comment on its author, as an application layer would."""
    await User.update_many([user.id], push={User.threads: [thread.id]})


class TestCascadeDelete:

    @pytest.mark.asyncio
    async def test_leaf_deletes_only_itself(self, service, fake_client):
        alice = await make_user("Alice")
        keep = await make_post(alice, "keep", minutes=1)
        leaf = await make_post(alice, "leaf", minutes=2)

        deleted = await service.delete_thread(leaf.id)

        assert deleted == 1
        assert set(fake_client.store["threads"]) == {keep.id}
        assert (await User.get(alice.id)).threads == [keep.id]

    @pytest.mark.asyncio
    async def test_tree_scenario_removes_every_descendant(self, service, fake_client):
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        carol = await make_user("Carol")
        science = await make_community()

        a = await make_post(alice, "A", community=science)
        b = await _reply(service, a, bob, "B")
        c = await _reply(service, a, carol, "C")
        d = await _reply(service, b, carol, "D")
        for user, thread in [(bob, b), (carol, c), (carol, d)]:
            await _track(user, thread)
        survivor = await make_post(carol, "survivor", minutes=5, community=science)

        deleted = await service.delete_thread(a.id)

        assert deleted == 4
        assert set(fake_client.store["threads"]) == {survivor.id}
        assert (await User.get(alice.id)).threads == []
        assert (await User.get(bob.id)).threads == []
        assert (await User.get(carol.id)).threads == [survivor.id]
        assert (await Community.get(science.id)).threads == [survivor.id]

    @pytest.mark.asyncio
    async def test_chain_of_depth_d_removes_d_plus_one(self, service, fake_client):
        alice = await make_user("Alice")
        root = await make_post(alice, "root")
        node = root
        depth = 6
        for level in range(depth):
            node = await _reply(service, node, alice, f"level {level}")

        assert await service.delete_thread(root.id) == depth + 1
        assert fake_client.store["threads"] == {}

    @pytest.mark.asyncio
    async def test_descendants_listed_parent_before_children(self, service):
        alice = await make_user("Alice")
        a = await make_post(alice, "A")
        b = await _reply(service, a, alice, "B")
        c = await _reply(service, a, alice, "C")
        d = await _reply(service, b, alice, "D")
        e = await _reply(service, d, alice, "E")

        found = await service._fetch_all_child_threads(a.id)
        order = [t.id for t in found]

        assert set(order) == {b.id, c.id, d.id, e.id}
        assert order.index(b.id) < order.index(d.id) < order.index(e.id)

    @pytest.mark.asyncio
    async def test_one_parent_query_per_visited_thread(self, service, fake_client):
        alice = await make_user("Alice")
        a = await make_post(alice, "A")
        b = await _reply(service, a, alice, "B")
        await _reply(service, a, alice, "C")
        await _reply(service, b, alice, "D")
        fake_client.queries.clear()

        await service._fetch_all_child_threads(a.id)

        parent_queries = [q for q in fake_client.queries if q[0] == "threads"]
        assert len(parent_queries) == 4

    @pytest.mark.asyncio
    async def test_other_users_threads_are_untouched(self, service):
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        mine = await make_post(alice, "mine", minutes=1)
        theirs = await make_post(bob, "theirs", minutes=2)
        other = await make_post(alice, "other", minutes=3)

        await service.delete_thread(mine.id)

        assert (await User.get(alice.id)).threads == [other.id]
        assert (await User.get(bob.id)).threads == [theirs.id]

    @pytest.mark.asyncio
    async def test_missing_author_is_skipped(self, service, fake_client):
        alice = await make_user("Alice")
        post = await make_post(alice, "orphan")
        del fake_client.store["users"][alice.id]

        assert await service.delete_thread(post.id) == 1
        assert fake_client.store["threads"] == {}

    @pytest.mark.asyncio
    async def test_unknown_thread_raises_not_found(self, service):
        with pytest.raises(NotFound):
            await service.delete_thread("missing")

    @pytest.mark.asyncio
    async def test_revalidates_path(self, initialized_models):
        paths = []
        service = ThreadTreeService(revalidate=paths.append)
        alice = await make_user("Alice")
        post = await make_post(alice)

        await service.delete_thread(post.id, path="/feed")

        assert paths == ["/feed"]


class TestDanglingChildReference:

    @pytest.mark.asyncio
    async def test_surviving_parent_keeps_deleted_child_id(self, service):
        alice = await make_user("Alice")
        post = await make_post(alice)
        comment = await _reply(service, post, alice)

        await service.delete_thread(comment.id)

        parent = await Thread.get(post.id)
        assert parent.children == [comment.id]

    @pytest.mark.asyncio
    async def test_detach_from_parent_pulls_child_id(self, initialized_models):
        service = ThreadTreeService(detach_from_parent=True)
        alice = await make_user("Alice")
        post = await make_post(alice)
        kept = await _reply(service, post, alice, "kept")
        gone = await _reply(service, post, alice, "gone")

        await service.delete_thread(gone.id)

        parent = await Thread.get(post.id)
        assert parent.children == [kept.id]

    @pytest.mark.asyncio
    async def test_fetch_keeps_dangling_id_raw(self, service):
        alice = await make_user("Alice")
        post = await make_post(alice)
        comment = await _reply(service, post, alice)
        await service.delete_thread(comment.id)

        view = await service.fetch_thread_by_id(post.id)

        assert view.children == [comment.id]


class TestDeleteFailures:

    @pytest.mark.asyncio
    async def test_failure_after_thread_delete_is_partial(self, service, fake_client):
        alice = await make_user("Alice")
        post = await make_post(alice)
        fake_client.fail_writes_to("users")

        with pytest.raises(DeleteError) as excinfo:
            await service.delete_thread(post.id)

        error = excinfo.value
        assert error.partial
        assert error.completed_steps == ("threads",)
        assert isinstance(error.__cause__, PartialFailure)
        assert "unavailable" in str(error)
        assert fake_client.store["threads"] == {}
        # Back-reference was not scrubbed and nothing rolls it back.
        assert fake_client.store["users"][alice.id]["threads"] == [post.id]

    @pytest.mark.asyncio
    async def test_failure_before_any_write_is_not_partial(self, service, fake_client):
        alice = await make_user("Alice")
        post = await make_post(alice)
        fake_client.fail_writes_to("threads")

        with pytest.raises(DeleteError) as excinfo:
            await service.delete_thread(post.id)

        assert not excinfo.value.partial
        assert post.id in fake_client.store["threads"]
