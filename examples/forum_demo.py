import asyncio
import logging

from firestore_threads import (
    Community,
    FirestoreDB,
    ThreadTreeService,
    User,
    init_firestore_threads,
)

logging.basicConfig(level=logging.INFO)


def revalidate(path: str) -> None:
    print(f"revalidate {path}")


async def main():
    # GOOGLE_CLOUD_PROJECT / DATABASE / FIRESTORE_EMULATOR_HOST
    db = FirestoreDB.from_env()
    init_firestore_threads(db)
    service = ThreadTreeService(revalidate=revalidate)

    alice = await User(name="Alice", username="alice").save()
    bob = await User(name="Bob", username="bob").save()
    await Community(external_id="org_science", name="Science").save()

    post = await service.create_thread(
        "What are you reading?", alice.id, community_id="org_science", path="/"
    )
    reply = await service.add_comment_to_thread(post.id, "Dune, again.", bob.id, path=f"/thread/{post.id}")
    await service.add_comment_to_thread(reply.id, "Classic.", alice.id)

    page = await service.fetch_posts(page=1, page_size=10)
    for item in page.posts:
        print(item.text, "by", item.author.name, f"({len(item.children)} replies)")

    tree = await service.fetch_thread_by_id(post.id)
    for child in tree.children:
        print(" ", child.author.name, ":", child.text)
        for nested in child.children:
            print("    ", nested.author.name, ":", nested.text)

    deleted = await service.delete_thread(post.id, path="/")
    print(f"deleted {deleted} threads")


if __name__ == "__main__":
    asyncio.run(main())
