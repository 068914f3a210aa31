import math
import unittest

from reba_engine.exposure import Segment
from reba_engine.geometry import AngleSet
from reba_engine.landmarks import LEFT_INDEX, RIGHT_INDEX
from reba_engine.scoring import NeckStatus, RiskLevel
from reba_engine.session import RebaSession, representative_angles, validate_force_load
from tests.poses import bent_trunk_pose, hidden_pose, make_pose, standing_pose

FRAME = 1 / 30


def feed(session, pose, seconds, step=FRAME):
    for _ in range(round(seconds / step)):
        session.update(pose, elapsed=step)


class TestTiming(unittest.TestCase):

    def test_elapsed_mode(self):
        session = RebaSession()
        session.update(standing_pose(), elapsed=0.5)
        session.update(standing_pose(), elapsed=0.25)
        self.assertEqual(session.state.frame_count, 2)
        self.assertAlmostEqual(session.state.elapsed_time, 0.75)
        self.assertAlmostEqual(session.state.segment(Segment.TRUNK).exposure_time, 0.75)

    def test_timestamp_mode(self):
        session = RebaSession()
        session.update(standing_pose(), timestamp=100.0)
        self.assertEqual(session.state.elapsed_time, 0.0)
        session.update(standing_pose(), timestamp=101.5)
        self.assertAlmostEqual(session.state.elapsed_time, 1.5)
        self.assertEqual(session.state.last_timestamp, 101.5)

    def test_timing_is_required(self):
        with self.assertRaises(ValueError):
            RebaSession().update(standing_pose())

    def test_negative_elapsed_counts_as_zero(self):
        session = RebaSession()
        with self.assertLogs("reba_engine.session", level="WARNING"):
            session.update(standing_pose(), elapsed=-1.0)
        self.assertEqual(session.state.elapsed_time, 0.0)
        self.assertEqual(session.state.frame_count, 1)

    def test_invalid_timestamp_is_skipped(self):
        session = RebaSession()
        for t in (0.0, 1.0, 2.0):
            session.update(standing_pose(), timestamp=t)
        with self.assertLogs("reba_engine.session", level="WARNING"):
            session.update(standing_pose(), timestamp=math.nan)
        self.assertEqual(session.state.last_timestamp, 2.0)
        for t in (3.0, 4.0):
            session.update(standing_pose(), timestamp=t)
        trunk = session.state.segments[Segment.TRUNK]
        self.assertAlmostEqual(trunk.exposure_time, 4.0)
        self.assertAlmostEqual(session.state.elapsed_time, 4.0)
        self.assertEqual(trunk.score, 1)
        self.assertEqual(session.state.frame_count, 6)


class TestPipeline(unittest.TestCase):

    def test_standing_still(self):
        session = RebaSession()
        feed(session, standing_pose(), 2.0)
        state = session.state
        self.assertEqual(state.segment(Segment.TRUNK).score, 1)
        self.assertEqual(state.segment(Segment.LEGS).score, 2)
        self.assertEqual(state.posture_score_a, 1)
        self.assertEqual(state.posture_score_b, 1)
        self.assertEqual(state.reba_score_final, 1)
        self.assertEqual(state.risk_level, RiskLevel.NEGLIGIBLE)
        self.assertAlmostEqual(state.angles.trunk, 0.0)

    def test_first_frame_scores_from_empty_history(self):
        session = RebaSession()
        session.update(standing_pose(), timestamp=0.0)
        self.assertEqual(session.state.segment(Segment.TRUNK).score, 0)
        self.assertEqual(session.state.reba_score_final, 1)

    def test_dominant_posture_wins(self):
        session = RebaSession()
        feed(session, standing_pose(), 3.0)
        feed(session, bent_trunk_pose(), 1.0)
        self.assertEqual(session.state.segment(Segment.TRUNK).score, 1)
        self.assertAlmostEqual(session.state.angles.trunk, 45.0)

        feed(session, bent_trunk_pose(), 3.0)
        state = session.state
        self.assertEqual(state.segment(Segment.TRUNK).score, 2)
        # legs 2, trunk 2, neck 1
        self.assertEqual(state.posture_score_a, 3)
        self.assertEqual(state.table_c_score, 2)
        self.assertEqual(state.risk_level, RiskLevel.LOW)

    def test_trunk_movement_is_counted(self):
        session = RebaSession()
        session.update(standing_pose(), elapsed=1.0)
        session.update(bent_trunk_pose(), elapsed=1.0)
        session.update(standing_pose(), elapsed=1.0)
        self.assertEqual(session.state.segment(Segment.TRUNK).event_count, 2)

    def test_lost_pose_keeps_history(self):
        session = RebaSession()
        feed(session, standing_pose(), 1.0)
        before = session.state.segment(Segment.TRUNK).exposure_time
        session.update(hidden_pose(), elapsed=1.0)
        state = session.state
        self.assertIsNone(state.angles.trunk)
        self.assertIsNone(state.segment(Segment.TRUNK).angle)
        self.assertEqual(state.segment(Segment.TRUNK).exposure_time, before)
        self.assertEqual(state.segment(Segment.TRUNK).score, 1)
        self.assertEqual(state.reba_score_final, 1)

    def test_flags_hold_while_not_computable(self):
        session = RebaSession()
        session.update(make_pose({LEFT_INDEX: (0.70, 0.62)}), elapsed=1.0)
        self.assertTrue(session.state.flags.wrist_bent)
        self.assertTrue(session.state.flags.wrist_twisted)
        self.assertEqual(session.state.coupling_score, 2)

        session.update(make_pose(hidden=[LEFT_INDEX, RIGHT_INDEX]), elapsed=1.0)
        self.assertTrue(session.state.flags.wrist_bent)

        session.update(standing_pose(), elapsed=1.0)
        self.assertFalse(session.state.flags.wrist_bent)
        self.assertEqual(session.state.coupling_score, 0)


class TestForceLoad(unittest.TestCase):

    def test_validate(self):
        for value in (0, 1, 2):
            self.assertEqual(validate_force_load(value), value)
        for value in (-1, 3, True, 1.5, "1"):
            with self.assertRaises(ValueError):
                validate_force_load(value)

    def test_constructor_rejects_bad_value(self):
        with self.assertRaises(ValueError):
            RebaSession(force_load=5)

    def test_force_load_is_not_compounded(self):
        session = RebaSession(force_load=1)
        feed(session, standing_pose(), 1.0)
        self.assertEqual(session.state.force_load_score, 1)
        self.assertEqual(session.state.reba_score_final, 2)

    def test_set_force_load(self):
        session = RebaSession()
        session.set_force_load(2)
        session.update(standing_pose(), elapsed=FRAME)
        self.assertEqual(session.state.force_load_score, 2)
        self.assertEqual(session.state.reba_score_final, 3)


class TestSessionLifecycle(unittest.TestCase):

    def test_reset_keeps_force_load(self):
        session = RebaSession(force_load=2)
        feed(session, bent_trunk_pose(), 1.0)
        session.reset()
        state = session.state
        self.assertEqual(state.frame_count, 0)
        self.assertEqual(state.elapsed_time, 0.0)
        self.assertEqual(state.force_load_base, 2)
        self.assertEqual(state.segment(Segment.TRUNK).exposure_time, 0.0)
        self.assertEqual(state.angles, AngleSet())

    def test_snapshot(self):
        session = RebaSession(session_id="abc")
        feed(session, standing_pose(), 1.0)
        snapshot = session.snapshot()
        self.assertEqual(snapshot.session_id, "abc")
        self.assertEqual(snapshot.reba_score_final, 1)
        self.assertEqual(snapshot.risk_action, "Negligible risk, no action required")
        self.assertEqual(snapshot.neck_status, NeckStatus.OK)
        self.assertEqual(set(snapshot.segments), set(Segment))

    def test_sessions_are_independent(self):
        first, second = RebaSession(), RebaSession()
        feed(first, bent_trunk_pose(), 1.0)
        self.assertEqual(second.state.frame_count, 0)
        self.assertNotEqual(first.session_id, second.session_id)

    def test_representative_angles_average_pairs(self):
        angles = AngleSet(trunk=10.0, left_upper_arm=20.0, right_upper_arm=40.0, right_wrist=-8.0)
        reduced = representative_angles(angles)
        self.assertEqual(reduced[Segment.TRUNK], 10.0)
        self.assertEqual(reduced[Segment.ARM], 30.0)
        self.assertEqual(reduced[Segment.WRIST], 8.0)
        self.assertIsNone(reduced[Segment.LEGS])


if __name__ == '__main__':
    unittest.main(verbosity=2)
