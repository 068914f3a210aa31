import unittest

from fastapi.testclient import TestClient

from reba_engine.api import create_app
from reba_engine.config import ServiceSettings
from tests.poses import bent_trunk_pose, standing_pose


def as_json(pose):
    return [lm.model_dump() for lm in pose]


class TestRebaApi(unittest.TestCase):

    def setUp(self):
        self.client = TestClient(create_app(ServiceSettings(max_sessions=2)))

    def create_session(self, **body):
        response = self.client.post("/sessions", json=body or None)
        self.assertEqual(response.status_code, 201)
        return response.json()["session_id"]

    def test_root(self):
        response = self.client.get("/")
        self.assertEqual(response.status_code, 200)
        self.assertIn("message", response.json())

    def test_create_session(self):
        response = self.client.post("/sessions", json={"force_load": 1})
        self.assertEqual(response.status_code, 201)
        data = response.json()
        self.assertTrue(data["session_id"])
        self.assertEqual(data["force_load_base"], 1)
        self.assertEqual(data["frame_count"], 0)
        self.assertEqual(set(data["segments"]), {"trunk", "neck", "legs", "arm", "forearm", "wrist"})

    def test_create_session_without_body(self):
        response = self.client.post("/sessions")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["force_load_base"], 0)

    def test_invalid_force_load(self):
        response = self.client.post("/sessions", json={"force_load": 3})
        self.assertEqual(response.status_code, 422)

    def test_session_limit(self):
        self.create_session()
        self.create_session()
        response = self.client.post("/sessions")
        self.assertEqual(response.status_code, 429)

    def test_unknown_session(self):
        self.assertEqual(self.client.get("/sessions/nope").status_code, 404)
        response = self.client.post("/sessions/nope/frames", json={"landmarks": [], "elapsed": 0.1})
        self.assertEqual(response.status_code, 404)

    def test_frames(self):
        session_id = self.create_session()
        for i in range(10):
            response = self.client.post(f"/sessions/{session_id}/frames",
                                        json={"landmarks": as_json(standing_pose()), "timestamp": i * 0.1})
            self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["frame_count"], 10)
        self.assertAlmostEqual(data["elapsed_time"], 0.9)
        self.assertEqual(data["reba_score_final"], 1)
        self.assertEqual(data["risk_level"], "negligible")
        self.assertEqual(data["neck_status"], "ok")
        self.assertAlmostEqual(data["angles"]["trunk"], 0.0)

    def test_frame_from_poses(self):
        session_id = self.create_session()
        body = {"poses": [as_json(bent_trunk_pose()), as_json(standing_pose())], "elapsed": 1.0}
        data = self.client.post(f"/sessions/{session_id}/frames", json=body).json()
        self.assertAlmostEqual(data["angles"]["trunk"], 45.0)
        self.assertEqual(data["segments"]["trunk"]["score"], 2)

    def test_frame_requires_timing(self):
        session_id = self.create_session()
        response = self.client.post(f"/sessions/{session_id}/frames", json={"landmarks": []})
        self.assertEqual(response.status_code, 422)
        response = self.client.post(f"/sessions/{session_id}/frames", json={"landmarks": [], "elapsed": -1})
        self.assertEqual(response.status_code, 422)

    def test_frame_rejects_non_finite_timing(self):
        session_id = self.create_session()
        for body in ('{"landmarks": [], "timestamp": NaN}', '{"landmarks": [], "elapsed": Infinity}'):
            response = self.client.post(f"/sessions/{session_id}/frames", content=body,
                                        headers={"Content-Type": "application/json"})
            self.assertEqual(response.status_code, 422)
        self.assertEqual(self.client.get(f"/sessions/{session_id}").json()["frame_count"], 0)

    def test_frame_rejects_oversized_pose(self):
        session_id = self.create_session()
        pose = as_json(standing_pose()) + [{"x": 0.5, "y": 0.5}]
        response = self.client.post(f"/sessions/{session_id}/frames", json={"landmarks": pose, "elapsed": 0.1})
        self.assertEqual(response.status_code, 422)
        response = self.client.post(f"/sessions/{session_id}/frames", json={"poses": [pose], "elapsed": 0.1})
        self.assertEqual(response.status_code, 422)

    def test_empty_frame(self):
        session_id = self.create_session()
        response = self.client.post(f"/sessions/{session_id}/frames", json={"landmarks": [], "elapsed": 0.5})
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.json()["angles"]["trunk"])

    def test_force_load_and_reset(self):
        session_id = self.create_session()
        response = self.client.put(f"/sessions/{session_id}/force_load", json={"force_load": 2})
        self.assertEqual(response.json()["force_load_base"], 2)
        self.client.post(f"/sessions/{session_id}/frames",
                         json={"landmarks": as_json(standing_pose()), "elapsed": 0.1})
        response = self.client.post(f"/sessions/{session_id}/reset")
        data = response.json()
        self.assertEqual(data["frame_count"], 0)
        self.assertEqual(data["force_load_base"], 2)

    def test_delete_session(self):
        session_id = self.create_session()
        self.assertEqual(self.client.delete(f"/sessions/{session_id}").status_code, 204)
        self.assertEqual(self.client.get(f"/sessions/{session_id}").status_code, 404)
        self.assertEqual(self.client.delete(f"/sessions/{session_id}").status_code, 404)

    def test_analyze(self):
        frames = [{"landmarks": as_json(bent_trunk_pose()), "elapsed": 0.5} for _ in range(4)]
        response = self.client.post("/analyze", json={"frames": frames, "force_load": 1})
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertIsNone(data["session_id"])
        self.assertEqual(data["frame_count"], 4)
        self.assertEqual(data["posture_score_a"], 3)
        self.assertEqual(data["force_load_score"], 1)
        self.assertEqual(data["reba_score_final"], 3)
        # analysis does not register a session
        self.assertEqual(len(self.client.app.state.sessions), 0)


if __name__ == '__main__':
    unittest.main(verbosity=2)
