from unittest.mock import patch
import uuid

from django.core.cache import cache
from django.urls import reverse
from rest_framework.test import APITestCase

from authentication.context import SESSION_API_KEY, SESSION_USER_KEY
from authentication.profiles import UserProfile
from tests.fakes import FakeTableStore
from utils.supabase_store import SESSIONS_TABLE, set_store

REPLY = "Bu bir Etki-Tepki meselesi.\n\n---\n*Model: gemini-3-flash-preview*"


class ChatViewTestCase(APITestCase):
    def setUp(self):
        cache.clear()
        self.store = FakeTableStore()
        set_store(self.store)
        self.addCleanup(set_store, None)

        self.profile = UserProfile(id="u1", username="ahmet", name="Ahmet")
        session = self.client.session
        session[SESSION_USER_KEY] = self.profile.to_dict()
        session[SESSION_API_KEY] = "personal-key"
        session.save()

        patcher = patch("chat.service.ResponseGenerator")
        self.generator_cls = patcher.start()
        self.addCleanup(patcher.stop)
        self.generator_cls.return_value.respond.return_value = REPLY

    def _start(self):
        resp = self.client.post(reverse("chat:sessions"), {}, format="json")
        self.assertEqual(resp.status_code, 201, resp.content)
        return resp.json()["session"]


class ChatSessionViewTests(ChatViewTestCase):
    def test_anonymous_is_rejected(self):
        self.client = self.client_class()
        resp = self.client.get(reverse("chat:sessions"))
        self.assertEqual(resp.status_code, 401)

    def test_create_session_returns_persisted_session_with_welcome(self):
        session = self._start()
        self.assertEqual(session["status"], "persisted")
        self.assertEqual(len(session["messages"]), 1)
        self.assertEqual(session["messages"][0]["role"], "model")
        self.assertEqual(len(self.store.rows(SESSIONS_TABLE)), 1)

    def test_ask_appends_both_messages(self):
        sid = self._start()["id"]
        r = self.client.post(reverse("chat:ask", kwargs={"sid": sid}), {"text": "Hai"}, format="json")

        self.assertEqual(r.status_code, 200, r.content)
        body = r.json()
        self.assertEqual(body["answer"], REPLY)
        self.assertEqual(body["alerts"], [])
        self.assertEqual([m["role"] for m in body["session"]["messages"]], ["model", "user", "model"])
        self.assertEqual(body["session"]["title"], "Hai")

        respond = self.generator_cls.return_value.respond
        self.assertEqual(respond.call_args.kwargs["api_key_override"], "personal-key")

    def test_ask_accepts_q_and_content_aliases(self):
        sid = self._start()["id"]
        for key in ("q", "content"):
            r = self.client.post(reverse("chat:ask", kwargs={"sid": sid}), {key: "Selam"}, format="json")
            self.assertEqual(r.status_code, 200)

    def test_ask_empty_question(self):
        sid = self._start()["id"]
        r = self.client.post(reverse("chat:ask", kwargs={"sid": sid}), {"text": "   "}, format="json")
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json(), {"error": "empty question"})

    def test_ask_unknown_session(self):
        r = self.client.post(reverse("chat:ask", kwargs={"sid": str(uuid.uuid4())}), {"text": "Selam"}, format="json")
        self.assertEqual(r.status_code, 404)

    def test_store_outage_surfaces_alerts_and_recovers_on_list(self):
        self.store.fail("upsert", SESSIONS_TABLE)
        session = self._start()
        self.assertEqual(session["status"], "draft")
        self.assertTrue(session["dirty"])

        r = self.client.post(reverse("chat:ask", kwargs={"sid": session["id"]}), {"text": "Selam"}, format="json")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(len(r.json()["alerts"]), 2)
        self.assertEqual(r.json()["answer"], REPLY)

        self.store.recover()
        listed = self.client.get(reverse("chat:sessions")).json()["sessions"]
        self.assertEqual(len(listed), 1)
        self.assertEqual(listed[0]["status"], "persisted")
        self.assertFalse(listed[0]["dirty"])
        self.assertEqual(len(self.store.rows(SESSIONS_TABLE)[0]["messages"]), 3)

    def test_detail_and_delete(self):
        sid = self._start()["id"]
        r = self.client.get(reverse("chat:session_detail", kwargs={"sid": sid}))
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["session"]["id"], sid)

        r = self.client.delete(reverse("chat:session_detail", kwargs={"sid": sid}))
        self.assertEqual(r.status_code, 200)
        self.assertEqual(self.store.rows(SESSIONS_TABLE), [])
        r = self.client.get(reverse("chat:session_detail", kwargs={"sid": sid}))
        self.assertEqual(r.status_code, 404)

    def test_list_store_failure_is_502(self):
        self.store.fail("select", SESSIONS_TABLE)
        r = self.client.get(reverse("chat:sessions"))
        self.assertEqual(r.status_code, 502)
        self.assertEqual(r.json()["category"], "unavailable")

    def test_export_is_an_attachment(self):
        sid = self._start()["id"]
        r = self.client.get(reverse("chat:export", kwargs={"sid": sid}))
        self.assertEqual(r.status_code, 200)
        self.assertIn("attachment", r["Content-Disposition"])
        self.assertEqual(r.json()["user"]["username"], "ahmet")


class LibraryViewTests(ChatViewTestCase):
    def test_course_list_hides_prompts(self):
        r = self.client.get(reverse("chat:courses"))
        courses = r.json()["courses"]
        self.assertEqual([c["id"] for c in courses], ["relations", "success", "avoidance"])
        self.assertNotIn("prompt_context", courses[0])

    @patch("chat.library.generate_response", return_value="Kurs içeriği")
    def test_course_detail_is_informational(self, mock_generate):
        r = self.client.get(reverse("chat:course_detail", kwargs={"course_id": "success"}))
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["content"], "Kurs içeriği")
        self.assertTrue(mock_generate.call_args.kwargs["informational"])
        self.assertEqual(mock_generate.call_args.kwargs["api_key_override"], "personal-key")

    def test_unknown_course(self):
        r = self.client.get(reverse("chat:course_detail", kwargs={"course_id": "nope"}))
        self.assertEqual(r.status_code, 404)

    @patch("chat.library.generate_response", return_value="Yasa açıklaması")
    def test_explain_law(self, mock_generate):
        self.assertEqual(len(self.client.get(reverse("chat:laws")).json()["laws"]), 6)
        r = self.client.post(reverse("chat:explain_law"), {"law": "Hakediş Yasası"}, format="json")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["content"], "Yasa açıklaması")
        self.assertIn("Hakediş Yasası", mock_generate.call_args.args[0])
