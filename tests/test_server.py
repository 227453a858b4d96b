"""
Steplang API Server Tests
=========================
HTTP routes exercised in-process through FastAPI's TestClient.

Usage:
    python -m unittest tests.test_server -v
    python -m pytest tests/test_server.py -v
"""
import sys
import os
import inspect
import unittest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi.testclient import TestClient

from steplang import __version__
from steplang import server


class ServerTestCase(unittest.TestCase):

    def setUp(self):
        server._sessions.clear()
        self.client = TestClient(server.app)

    def post(self, path, **body):
        return self.client.post(path, json=body)


class TestFrontEndRoutes(ServerTestCase):

    def test_health(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok", "version": __version__, "sessions": 0})

    def test_tokenize(self):
        response = self.post("/api/tokenize", source="let x = 1;")
        tokens = response.json()["tokens"]
        self.assertEqual([t["type"] for t in tokens], ["LET", "IDENTIFIER", "ASSIGN", "INT", "SEMICOLON", "EOF"])
        self.assertEqual(tokens[1], {"type": "IDENTIFIER", "literal": "x", "line": 1, "column": 5})

    def test_parse(self):
        data = self.post("/api/parse", source="let x = 1 + 2;\nx * 3").json()
        self.assertTrue(data["ok"])
        self.assertEqual(data["errors"], [])
        self.assertEqual([s["node_type"] for s in data["statements"]], ["LetStatement", "ExpressionStatement"])
        self.assertEqual(data["statements"][0]["source"], "let x = (1 + 2);")
        self.assertEqual(data["statements"][1]["line"], 2)

    def test_parse_reports_errors_without_failing(self):
        data = self.post("/api/parse", source="let = 1;").json()
        self.assertFalse(data["ok"])
        self.assertEqual(data["errors"][0]["line"], 1)
        self.assertIn("Expected identifier", data["errors"][0]["message"])

    def test_run(self):
        data = self.post("/api/run", source='print("hi"); 2 * 21').json()
        self.assertEqual(data["result"], "42")
        self.assertEqual(data["result_type"], "INTEGER")
        self.assertIn({"value": "hi", "type": "log"}, [
            {"value": e["value"], "type": e["type"]} for e in data["output"]
        ])

    def test_run_runtime_error_is_a_value(self):
        data = self.post("/api/run", source="nope").json()
        self.assertEqual(data["result_type"], "ERROR")
        self.assertEqual(data["result"], "ERROR: identifier not found: nope")

    def test_run_syntax_error(self):
        response = self.post("/api/run", source="let x = ;")
        self.assertEqual(response.status_code, 400)
        self.assertTrue(response.json()["detail"]["errors"])

    def test_run_overflow(self):
        response = self.post("/api/run", source="let f = fn() { f() }; f();", max_call_depth=10)
        self.assertEqual(response.status_code, 422)
        self.assertIn("Stack overflow", response.json()["detail"])

    def test_run_loop_limit_override(self):
        data = self.post("/api/run", source="while (true) { }", max_loop_iterations=3).json()
        self.assertEqual(data["result"], "ERROR: Loop exceeded maximum iterations (3)")


class TestStepRoutes(ServerTestCase):

    def prepare(self, source, **limits):
        response = self.post("/api/step/prepare", source=source, **limits)
        self.assertEqual(response.status_code, 200)
        return response.json()

    def test_prepare_then_step(self):
        data = self.prepare("let x = 1;")
        session_id = data["session_id"]
        self.assertIsNone(data["state"]["current_step"])

        data = self.post("/api/step/next", session_id=session_id).json()
        step = data["state"]["current_step"]
        self.assertEqual(step["step_number"], 1)
        self.assertEqual(step["node_type"], "Program")
        self.assertEqual(step["step_type"], "before")
        self.assertNotIn("node", step)

        data = self.post("/api/step/next", session_id=session_id).json()
        self.assertEqual(data["state"]["current_step"]["node_path"], "program.statements[0]")

    def test_previous_and_state(self):
        session_id = self.prepare("1 + 2")["session_id"]
        for _ in range(3):
            self.post("/api/step/next", session_id=session_id)

        data = self.post("/api/step/previous", session_id=session_id).json()
        self.assertTrue(data["moved"])
        self.assertEqual(data["state"]["current_step_number"], 2)

        data = self.client.get("/api/step/state", params={"session_id": session_id}).json()
        self.assertEqual(data["state"]["current_step_number"], 2)

        self.post("/api/step/previous", session_id=session_id)
        data = self.post("/api/step/previous", session_id=session_id).json()
        self.assertFalse(data["moved"])
        self.assertEqual(data["state"]["current_step_number"], 1)

    def test_stepping_to_completion(self):
        session_id = self.prepare("let x = 2; x * x")["session_id"]
        state = None
        for _ in range(100):
            state = self.post("/api/step/next", session_id=session_id).json()["state"]
            if state["is_complete"]:
                break
        self.assertTrue(state["is_complete"])
        self.assertEqual(state["current_step"]["result_text"], "4")

    def test_unknown_session(self):
        response = self.post("/api/step/next", session_id="missing")
        self.assertEqual(response.status_code, 404)
        response = self.client.get("/api/step/state", params={"session_id": "missing"})
        self.assertEqual(response.status_code, 404)

    def test_step_limit_is_reported(self):
        session_id = self.prepare("while (true) { }", max_steps=3)["session_id"]
        codes = [self.post("/api/step/next", session_id=session_id).status_code for _ in range(4)]
        self.assertEqual(codes[:3], [200, 200, 200])
        self.assertEqual(codes[3], 422)

    def test_evaluating_routes_run_in_the_threadpool(self):
        for route in (server.api_run, server.api_step_prepare, server.api_step_next,
                      server.api_step_previous, server.api_step_state):
            with self.subTest(route=route.__name__):
                self.assertFalse(inspect.iscoroutinefunction(route))

    def test_step_limit_leaves_the_error_in_state(self):
        session_id = self.prepare("while (true) { }", max_steps=3)["session_id"]
        for _ in range(4):
            self.post("/api/step/next", session_id=session_id)
        state = self.client.get("/api/step/state", params={"session_id": session_id}).json()["state"]
        self.assertTrue(state["is_complete"])
        self.assertEqual(state["call_stack"], [])
        self.assertEqual(state["output"][-1]["type"], "error")
        self.assertEqual(state["current_step"]["node_type"], "Program")

    def test_sessions_are_capped(self):
        for _ in range(server.MAX_SESSIONS + 5):
            self.prepare("1")
        self.assertEqual(len(server._sessions), server.MAX_SESSIONS)


if __name__ == "__main__":
    unittest.main()
