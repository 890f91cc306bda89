import json
from unittest.mock import patch

from django.test import TestCase, Client
from django.urls import reverse

from authentication.context import SESSION_USER_KEY
from authentication.profiles import UserProfile
from tests.fakes import FakeTableStore
from utils.supabase_store import USERS_TABLE, set_store


class UserSettingsTestCase(TestCase):
    def setUp(self):
        self.client = Client()
        self.store = FakeTableStore()
        set_store(self.store)
        self.addCleanup(set_store, None)

        row = self.store.seed(USERS_TABLE, username="ahmet", password="pw", role="user", full_name="Ahmet")
        self.profile = UserProfile.from_record(row)
        session = self.client.session
        session[SESSION_USER_KEY] = self.profile.to_dict()
        session.save()

    def _put_profile(self, payload):
        return self.client.put(reverse("user_settings:user_profile"), data=json.dumps(payload),
                               content_type="application/json")

    def _me(self):
        return self.client.get(reverse("authentication:me")).json()


class ProfileViewTests(UserSettingsTestCase):
    def test_requires_login(self):
        resp = Client().get(reverse("user_settings:user_profile"))
        self.assertEqual(resp.status_code, 401)

    def test_get_syncs_snapshot_with_store(self):
        self.store.rows(USERS_TABLE)[0]["job"] = "Mimar"
        resp = self.client.get(reverse("user_settings:user_profile"))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["user"]["job"], "Mimar")
        self.assertEqual(self._me()["user"]["job"], "Mimar")

    def test_get_falls_back_to_snapshot_when_store_is_down(self):
        self.store.fail("select", USERS_TABLE)
        resp = self.client.get(reverse("user_settings:user_profile"))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["user"]["name"], "Ahmet")

    def test_put_updates_store_and_snapshot(self):
        resp = self._put_profile({
            "name": "Ahmet Bey", "age": "41", "gender": "Erkek", "marital_status": "Evli",
            "job": "Mühendis", "notes": "Sabahları yoğun", "role": "admin",
        })
        self.assertEqual(resp.status_code, 200, resp.content)
        self.assertTrue(resp.json()["success"])
        self.assertEqual(resp.json()["alerts"], [])

        row = self.store.rows(USERS_TABLE)[0]
        self.assertEqual(row["full_name"], "Ahmet Bey")
        self.assertEqual(row["age"], "41")
        self.assertEqual(row["marital_status"], "Evli")
        self.assertEqual(row["role"], "user")
        self.assertIn("updated_at", row)

        me = self._me()["user"]
        self.assertEqual(me["name"], "Ahmet Bey")
        self.assertEqual(me["role"], "user")

    def test_put_keeps_local_edit_when_store_fails(self):
        self.store.fail("update", USERS_TABLE, message="connection reset")
        resp = self._put_profile({"name": "Ahmet Bey", "job": "Mühendis"})

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertFalse(body["success"])
        self.assertEqual(len(body["alerts"]), 1)
        self.assertIn("connection reset", body["alerts"][0])
        self.assertEqual(self._me()["user"]["job"], "Mühendis")
        self.assertEqual(self.store.rows(USERS_TABLE)[0]["full_name"], "Ahmet")

    def test_blank_choices_default_to_unspecified(self):
        self._put_profile({"name": "Ahmet", "gender": "", "marital_status": ""})
        me = self._me()["user"]
        self.assertEqual(me["gender"], "Belirtilmemiş")
        self.assertEqual(me["marital_status"], "Belirtilmemiş")

    def test_invalid_payload(self):
        self.assertEqual(self._put_profile({"name": "Ahmet", "age": "yüz"}).status_code, 400)
        self.assertEqual(self._put_profile({"name": "Ahmet", "gender": "Diğer"}).status_code, 400)
        self.assertEqual(self._put_profile({"age": "30"}).status_code, 400)
        resp = self.client.put(reverse("user_settings:user_profile"), data="[1, 2]",
                               content_type="application/json")
        self.assertEqual(resp.status_code, 400)


class ApiKeyViewTests(UserSettingsTestCase):
    def test_set_and_clear_override(self):
        resp = self.client.post(reverse("user_settings:api_key"), data=json.dumps({"api_key": " AIza-test "}),
                                content_type="application/json")
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(self._me()["has_api_key_override"])

        resp = self.client.delete(reverse("user_settings:api_key"))
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(self._me()["has_api_key_override"])

    def test_missing_key(self):
        resp = self.client.post(reverse("user_settings:api_key"), data=json.dumps({}),
                                content_type="application/json")
        self.assertEqual(resp.status_code, 400)

    @patch("user_settings.views.probe_connection", return_value={"success": True, "message": "BAŞARILI!"})
    def test_probe_uses_given_key_then_override(self, mock_probe):
        resp = self.client.post(reverse("user_settings:test_api_key"), data=json.dumps({"api_key": "candidate"}),
                                content_type="application/json")
        self.assertEqual(resp.json(), {"success": True, "message": "BAŞARILI!"})
        mock_probe.assert_called_with("candidate")

        self.client.post(reverse("user_settings:api_key"), data=json.dumps({"api_key": "saved"}),
                         content_type="application/json")
        self.client.get(reverse("user_settings:test_api_key"))
        mock_probe.assert_called_with("saved")
