import json
import unittest
from unittest.mock import MagicMock

from snapgram import api
from snapgram.account import InMemoryAccountService
from snapgram.db import InMemoryDocumentStore
from snapgram.errors import SnapgramError
from snapgram.storage import InMemoryFileStorage
from snapgram.types import FileUpload, NewPost, NewUser, UpdatePost, UpdateUser


def _upload(name="photo.png"):
    return FileUpload(filename=name, content=b"image-bytes", content_type="image/png")


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDocumentStore()
        self.storage = InMemoryFileStorage()
        self.account = InMemoryAccountService()

    def create_post(self, caption="Sunset at the bay", tags="sea, sky", user_id="u1"):
        return api.create_post(
            NewPost(user_id=user_id, caption=caption, files=[_upload()], tags=tags),
            db=self.db,
            storage=self.storage,
        )


class UserApiTests(ApiTestCase):
    def test_create_user_account_saves_profile_with_avatar(self):
        user = api.create_user_account(
            NewUser(name="Ada Lovelace", email="ada@example.com", password="password123", username="ada"),
            account=self.account,
            db=self.db,
        )
        self.assertEqual(user["name"], "Ada Lovelace")
        self.assertEqual(user["username"], "ada")
        self.assertIn("avatars/initials", user["imageUrl"])
        self.assertEqual(len(self.account.accounts), 1)
        self.assertEqual(user["accountId"], next(iter(self.account.accounts)))

    def test_create_user_account_wraps_platform_errors(self):
        new_user = NewUser(name="Ada", email="ada@example.com", password="password123")
        api.create_user_account(new_user, account=self.account, db=self.db)
        with self.assertRaises(SnapgramError) as ctx:
            api.create_user_account(new_user, account=self.account, db=self.db)
        payload = json.loads(ctx.exception.message)
        self.assertEqual(payload["name"], "AccountError")
        self.assertEqual(payload["code"], 409)
        self.assertEqual(ctx.exception.http_status, 409)

    def test_sign_in_current_user_and_sign_out(self):
        created = api.create_user_account(
            NewUser(name="Ada", email="ada@example.com", password="password123"),
            account=self.account,
            db=self.db,
        )
        self.assertIsNone(api.get_account(account=self.account))

        api.sign_in_account("ada@example.com", "password123", account=self.account)
        current = api.get_current_user(account=self.account, db=self.db)
        self.assertEqual(current["$id"], created["$id"])

        self.assertEqual(api.sign_out_account(account=self.account), {"status": "ok"})
        with self.assertRaises(SnapgramError) as ctx:
            api.get_current_user(account=self.account, db=self.db)
        self.assertEqual(ctx.exception.code, 401)

    def test_get_current_user_without_profile_document(self):
        self.account.create("ada@example.com", "password123", "Ada")
        self.account.create_email_session("ada@example.com", "password123")
        with self.assertRaises(SnapgramError) as ctx:
            api.get_current_user(account=self.account, db=self.db)
        self.assertEqual(ctx.exception.code, 404)

    def test_get_users_newest_first_with_limit(self):
        for name in ("a", "b", "c"):
            api.save_user_to_db({"name": name}, db=self.db)
        users = api.get_users(2, db=self.db)
        self.assertEqual(users["total"], 3)
        self.assertEqual([u["name"] for u in users["documents"]], ["c", "b"])
        self.assertEqual(len(api.get_users(db=self.db)["documents"]), 3)

    def test_get_user_by_id_missing(self):
        with self.assertRaises(SnapgramError) as ctx:
            api.get_user_by_id("missing", db=self.db)
        self.assertEqual(ctx.exception.http_status, 404)

    def test_update_user_replaces_image_and_deletes_old_one(self):
        old_file = self.storage.create_file(_upload("old.png"))
        user = api.save_user_to_db(
            {"name": "Ada", "imageUrl": "old-url", "imageId": old_file["$id"]}, db=self.db
        )
        updated = api.update_user(
            UpdateUser(
                user_id=user["$id"],
                name="Ada L",
                bio="Analyst",
                image_url="old-url",
                image_id=old_file["$id"],
                files=[_upload("new.png")],
            ),
            db=self.db,
            storage=self.storage,
        )
        self.assertEqual(updated["name"], "Ada L")
        self.assertEqual(updated["bio"], "Analyst")
        self.assertNotEqual(updated["imageId"], old_file["$id"])
        self.assertIn(updated["imageId"], updated["imageUrl"])
        self.assertEqual(list(self.storage.stored_files), [updated["imageId"]])

    def test_update_user_without_file_keeps_image(self):
        user = api.save_user_to_db({"name": "Ada", "imageUrl": "avatar"}, db=self.db)
        updated = api.update_user(
            UpdateUser(user_id=user["$id"], name="Ada", bio="hi", image_url="avatar"),
            db=self.db,
            storage=self.storage,
        )
        self.assertEqual(updated["imageUrl"], "avatar")
        self.assertIsNone(updated["imageId"])

    def test_update_user_failure_deletes_new_upload(self):
        with self.assertRaises(SnapgramError):
            api.update_user(
                UpdateUser(
                    user_id="missing",
                    name="Ada",
                    bio=None,
                    image_url="avatar",
                    files=[_upload()],
                ),
                db=self.db,
                storage=self.storage,
            )
        self.assertEqual(self.storage.stored_files, {})


class PostApiTests(ApiTestCase):
    def test_create_post_uploads_image_and_parses_tags(self):
        post = self.create_post(tags=" sea , sky,, sunset ")
        self.assertEqual(post["creator"], "u1")
        self.assertEqual(post["tags"], ["sea", "sky", "sunset"])
        self.assertIn(post["imageId"], self.storage.stored_files)
        self.assertIn(post["imageId"], post["imageUrl"])

    def test_create_post_without_tags(self):
        post = self.create_post(tags="")
        self.assertEqual(post["tags"], [])

    def test_create_post_preview_failure_deletes_upload(self):
        self.storage.get_file_preview = MagicMock(side_effect=RuntimeError("preview down"))
        with self.assertRaises(SnapgramError) as ctx:
            self.create_post()
        self.assertIn("preview down", ctx.exception.message)
        self.assertEqual(self.storage.stored_files, {})
        self.assertEqual(self.db.list_documents("posts")["total"], 0)

    def test_create_post_empty_preview_deletes_upload(self):
        self.storage.get_file_preview = MagicMock(return_value="")
        with self.assertRaises(SnapgramError):
            self.create_post()
        self.assertEqual(self.storage.stored_files, {})

    def test_create_post_document_failure_deletes_upload(self):
        self.db.create_document = MagicMock(side_effect=ConnectionError("db down"))
        with self.assertRaises(SnapgramError) as ctx:
            self.create_post()
        self.assertEqual(json.loads(ctx.exception.message)["name"], "ConnectionError")
        self.assertEqual(self.storage.stored_files, {})

    def test_cleanup_failure_still_surfaces_original_error(self):
        self.db.create_document = MagicMock(side_effect=ConnectionError("db down"))
        self.storage.delete_file = MagicMock(side_effect=RuntimeError("storage down"))
        with self.assertLogs("snapgram.api", level="ERROR"):
            with self.assertRaises(SnapgramError) as ctx:
                self.create_post()
        self.assertIn("db down", ctx.exception.message)

    def test_replaced_post_image_cleanup_failure_is_logged_not_raised(self):
        post = self.create_post()
        self.storage.delete_file = MagicMock(side_effect=RuntimeError("storage down"))
        with self.assertLogs("snapgram.api", level="ERROR") as logs:
            updated = api.update_post(
                UpdatePost(
                    post_id=post["$id"],
                    caption="Edited",
                    image_url=post["imageUrl"],
                    image_id=post["imageId"],
                    files=[_upload("new.png")],
                ),
                db=self.db,
                storage=self.storage,
            )
        self.assertIn(post["imageId"], logs.output[0])
        self.storage.delete_file.assert_called_once_with(post["imageId"])
        self.assertEqual(updated["caption"], "Edited")
        self.assertNotEqual(updated["imageId"], post["imageId"])
        self.assertEqual(self.db.get_document("posts", post["$id"])["caption"], "Edited")

    def test_replaced_avatar_cleanup_failure_is_logged_not_raised(self):
        old_file = self.storage.create_file(_upload("old.png"))
        user = api.save_user_to_db(
            {"name": "Ada", "imageUrl": "old-url", "imageId": old_file["$id"]}, db=self.db
        )
        self.storage.delete_file = MagicMock(side_effect=RuntimeError("storage down"))
        with self.assertLogs("snapgram.api", level="ERROR"):
            updated = api.update_user(
                UpdateUser(
                    user_id=user["$id"],
                    name="Ada L",
                    bio=None,
                    image_url="old-url",
                    image_id=old_file["$id"],
                    files=[_upload("new.png")],
                ),
                db=self.db,
                storage=self.storage,
            )
        self.storage.delete_file.assert_called_once_with(old_file["$id"])
        self.assertEqual(updated["name"], "Ada L")
        self.assertNotEqual(updated["imageId"], old_file["$id"])

    def test_create_post_requires_a_file(self):
        with self.assertRaises(SnapgramError) as ctx:
            api.create_post(
                NewPost(user_id="u1", caption="x", files=[]), db=self.db, storage=self.storage
            )
        self.assertEqual(ctx.exception.code, 400)

    def test_update_post_with_new_image(self):
        post = self.create_post()
        updated = api.update_post(
            UpdatePost(
                post_id=post["$id"],
                caption="Edited",
                image_url=post["imageUrl"],
                image_id=post["imageId"],
                files=[_upload("new.png")],
                location="Lisbon",
                tags="a,b",
            ),
            db=self.db,
            storage=self.storage,
        )
        self.assertEqual(updated["caption"], "Edited")
        self.assertEqual(updated["location"], "Lisbon")
        self.assertEqual(updated["tags"], ["a", "b"])
        self.assertNotEqual(updated["imageId"], post["imageId"])
        self.assertEqual(list(self.storage.stored_files), [updated["imageId"]])

    def test_update_post_without_file_keeps_image(self):
        post = self.create_post()
        updated = api.update_post(
            UpdatePost(
                post_id=post["$id"],
                caption="Edited",
                image_url=post["imageUrl"],
                image_id=post["imageId"],
            ),
            db=self.db,
            storage=self.storage,
        )
        self.assertEqual(updated["imageId"], post["imageId"])
        self.assertIn(post["imageId"], self.storage.stored_files)

    def test_update_post_failure_keeps_old_image_and_drops_new(self):
        post = self.create_post()
        self.db.update_document = MagicMock(side_effect=RuntimeError("write failed"))
        with self.assertRaises(SnapgramError):
            api.update_post(
                UpdatePost(
                    post_id=post["$id"],
                    caption="Edited",
                    image_url=post["imageUrl"],
                    image_id=post["imageId"],
                    files=[_upload("new.png")],
                ),
                db=self.db,
                storage=self.storage,
            )
        self.assertEqual(list(self.storage.stored_files), [post["imageId"]])

    def test_delete_post_removes_document_and_image(self):
        post = self.create_post()
        result = api.delete_post(post["$id"], post["imageId"], db=self.db, storage=self.storage)
        self.assertEqual(result, {"status": "ok"})
        self.assertEqual(self.storage.stored_files, {})
        with self.assertRaises(SnapgramError):
            api.get_post_by_id(post["$id"], db=self.db)

    def test_delete_post_requires_ids(self):
        with self.assertRaises(SnapgramError) as ctx:
            api.delete_post("", "img", db=self.db, storage=self.storage)
        self.assertEqual(ctx.exception.code, 400)

    def test_like_save_and_unsave(self):
        post = self.create_post()
        liked = api.like_post(post["$id"], ["u1", "u2"], db=self.db)
        self.assertEqual(liked["likes"], ["u1", "u2"])

        saved = api.save_post(post["$id"], "u2", db=self.db)
        self.assertEqual((saved["user"], saved["post"]), ("u2", post["$id"]))
        self.assertEqual(api.delete_saved_post(saved["$id"], db=self.db), {"status": "ok"})
        self.assertEqual(self.db.list_documents("saves")["total"], 0)

    def test_recent_posts_capped_at_twenty(self):
        for i in range(22):
            self.create_post(caption=f"post {i}")
        recent = api.get_recent_posts(db=self.db)
        self.assertEqual(recent["total"], 22)
        self.assertEqual(len(recent["documents"]), 20)
        self.assertEqual(recent["documents"][0]["caption"], "post 21")

    def test_infinite_posts_pages_by_cursor(self):
        for i in range(12):
            self.create_post(caption=f"post {i}")
        first = api.get_infinite_posts(db=self.db)
        self.assertEqual(len(first["documents"]), 10)
        self.assertEqual(first["documents"][0]["caption"], "post 11")

        second = api.get_infinite_posts(first["documents"][-1]["$id"], db=self.db)
        self.assertEqual(
            [d["caption"] for d in second["documents"]], ["post 1", "post 0"]
        )

    def test_infinite_posts_follow_updates(self):
        older = self.create_post(caption="older")
        self.create_post(caption="newer")
        api.like_post(older["$id"], ["u9"], db=self.db)
        page = api.get_infinite_posts(db=self.db)
        self.assertEqual(page["documents"][0]["caption"], "older")

    def test_search_posts_by_caption(self):
        self.create_post(caption="Sunset at the bay")
        self.create_post(caption="Mountain trail")
        results = api.search_posts("sunset", db=self.db)
        self.assertEqual([d["caption"] for d in results["documents"]], ["Sunset at the bay"])

    def test_user_posts(self):
        self.create_post(caption="mine", user_id="u1")
        self.create_post(caption="theirs", user_id="u2")
        self.assertIsNone(api.get_user_posts(None, db=self.db))
        posts = api.get_user_posts("u1", db=self.db)
        self.assertEqual([d["caption"] for d in posts["documents"]], ["mine"])


class FileApiTests(ApiTestCase):
    def test_upload_preview_delete(self):
        uploaded = api.upload_file(_upload(), storage=self.storage)
        url = api.get_file_preview(uploaded["$id"], storage=self.storage)
        self.assertIn("width=2000", url)
        self.assertEqual(api.delete_file(uploaded["$id"], storage=self.storage), {"status": "ok"})
        with self.assertRaises(SnapgramError):
            api.delete_file(uploaded["$id"], storage=self.storage)


if __name__ == "__main__":
    unittest.main()
