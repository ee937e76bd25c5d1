import numpy as np
import pytest

from core.errors import GeometryError
from privacy.decision_engine import BodyReason, DecisionEngine, RedactionPlan, decide
from schemas.face_detection import FaceDetection, FaceRegion, Gender
from schemas.policy_settings import PolicySettings
from schemas.segmentation_mask import SegmentationMask


NOTHING = PolicySettings(blur_faces=False, blur_men=False, blur_women=False, blur_bodies=False)


def make_face(x1=10, y1=10, x2=30, y2=30, gender=Gender.MALE, confidence=0.9) -> FaceDetection:
    return FaceDetection(x1=x1, y1=y1, x2=x2, y2=y2, gender=gender, confidence=confidence)


def make_mask(w: int, h: int, coverage: float) -> SegmentationMask:
    data = np.zeros(w * h, dtype=np.float32)
    data[: int(round(w * h * coverage))] = 1.0
    return SegmentationMask(width=w, height=h, data=data)


class TestFallback:

    @pytest.mark.parametrize("settings", [PolicySettings(), NOTHING])
    def test_unavailable_detector_always_falls_back(self, settings):
        plan = decide([make_face()], make_mask(10, 10, 0.5), settings, detector_available=False)

        assert plan.is_fallback
        assert plan.should_redact
        assert plan.faces == ()
        assert plan.mask is None
        assert plan.body_reason == BodyReason.FALLBACK


class TestNoTargets:

    def test_all_flags_off_never_redacts(self):
        plan = decide([make_face()], make_mask(10, 10, 0.9), NOTHING, detector_available=True)

        assert not plan.should_redact
        assert not plan.is_fallback
        assert plan.faces == ()
        assert plan.mask is None


class TestFacePolicy:

    def men_only(self, **kw):
        base = dict(blur_faces=False, blur_men=True, blur_women=False, blur_bodies=False,
                    gender_confidence_threshold=0.7)
        base.update(kw)
        return PolicySettings(**base)

    def test_confident_male_flagged(self):
        plan = decide([make_face(confidence=0.9)], None, self.men_only(), detector_available=True)

        assert plan.should_redact
        assert plan.faces == (FaceRegion(10, 10, 30, 30),)

    def test_low_confidence_male_not_flagged(self):
        plan = decide([make_face(confidence=0.5)], None, self.men_only(), detector_available=True)

        assert not plan.should_redact
        assert plan.faces == ()
        assert plan.low_confidence_faces == 1

    def test_female_not_flagged_for_men_only(self):
        face = make_face(gender=Gender.FEMALE)
        plan = decide([face], None, self.men_only(), detector_available=True)

        assert not plan.should_redact

    def test_women_only_flags_female(self):
        settings = self.men_only(blur_men=False, blur_women=True)
        faces = [make_face(gender=Gender.FEMALE), make_face(x1=40, x2=60, gender=Gender.MALE)]

        plan = decide(faces, None, settings, detector_available=True)

        assert plan.faces == (FaceRegion(10, 10, 30, 30),)

    def test_unknown_gender_only_via_blur_faces(self):
        face = make_face(gender=Gender.UNKNOWN, confidence=0.95)

        gendered = decide([face], None, self.men_only(blur_women=True), detector_available=True)
        blur_all = decide([face], None, self.men_only(blur_faces=True), detector_available=True)

        assert not gendered.should_redact
        assert blur_all.should_redact

    def test_blur_faces_ignores_confidence(self):
        face = make_face(confidence=0.1)
        plan = decide([face], None, self.men_only(blur_faces=True), detector_available=True)

        assert len(plan.faces) == 1

    def test_face_boxes_clipped_to_frame(self):
        face = make_face(x1=-5.5, y1=90.2, x2=20.1, y2=130)
        plan = decide([face], None, self.men_only(), detector_available=True, frame_size=(100, 100))

        assert plan.faces == (FaceRegion(0, 90, 21, 100),)

    def test_negative_coordinates_clamped_without_frame_size(self):
        face = make_face(x1=-5, y1=-3, x2=20, y2=20)
        plan = decide([face], None, self.men_only(), detector_available=True)

        assert plan.faces == (FaceRegion(0, 0, 20, 20),)

    def test_face_left_of_origin_dropped_without_frame_size(self):
        face = make_face(x1=-30, y1=5, x2=-10, y2=20)
        plan = decide([face], None, self.men_only(), detector_available=True)

        assert plan.faces == ()

    def test_face_outside_frame_dropped(self):
        face = make_face(x1=150, y1=150, x2=170, y2=170)
        plan = decide([face], None, self.men_only(), detector_available=True, frame_size=(100, 100))

        assert plan.faces == ()
        assert not plan.should_redact

    def test_order_is_preserved(self):
        faces = [make_face(x1=50, x2=60), make_face(x1=0, x2=5), make_face(x1=20, x2=25)]
        plan = decide(faces, None, self.men_only(), detector_available=True)

        assert [r.x1 for r in plan.faces] == [50, 0, 20]


class TestBodyLadder:

    def bodies(self, **kw):
        base = dict(blur_faces=False, blur_men=False, blur_women=True, blur_bodies=True,
                    body_coverage_threshold=0.01)
        base.update(kw)
        return PolicySettings(**base)

    def test_no_faces_with_coverage_redacts_body(self):
        mask = make_mask(50, 50, 0.02)
        plan = decide([], mask, self.bodies(), detector_available=True)

        assert plan.should_redact
        assert plan.mask is mask
        assert plan.body_reason == BodyReason.NO_FACES

    def test_flagged_face_redacts_body(self):
        mask = make_mask(50, 50, 0.5)
        face = make_face(gender=Gender.FEMALE)

        plan = decide([face], mask, self.bodies(), detector_available=True)

        assert plan.mask is mask
        assert plan.body_reason == BodyReason.FLAGGED_FACE
        assert plan.redaction_method == "face_and_body"

    def test_only_safe_faces_skip_body(self):
        mask = make_mask(50, 50, 0.5)
        face = make_face(gender=Gender.MALE)

        plan = decide([face], mask, self.bodies(), detector_available=True)

        assert plan.mask is None
        assert not plan.should_redact
        assert plan.body_reason == BodyReason.FACES_SAFE

    def test_coverage_below_threshold_is_noise(self):
        mask = make_mask(100, 100, 0.005)
        plan = decide([], mask, self.bodies(), detector_available=True)

        assert plan.mask is None
        assert not plan.should_redact
        assert plan.body_reason == BodyReason.BELOW_COVERAGE

    def test_coverage_must_exceed_threshold(self):
        mask = make_mask(100, 100, 0.01)
        plan = decide([], mask, self.bodies(), detector_available=True)

        assert plan.mask is None

    def test_missing_mask_skips_body_logic(self):
        plan = decide([], None, self.bodies(), detector_available=True)

        assert not plan.should_redact
        assert plan.body_reason == BodyReason.NO_MASK

    def test_mask_ignored_when_bodies_disabled(self):
        mask = make_mask(50, 50, 0.5)
        plan = decide([], mask, self.bodies(blur_bodies=False), detector_available=True)

        assert plan.mask is None
        assert plan.body_reason == BodyReason.DISABLED

    def test_bodies_only_with_faces_present_skips_body(self):
        settings = self.bodies(blur_women=False)
        mask = make_mask(50, 50, 0.5)

        plan = decide([make_face(gender=Gender.FEMALE)], mask, settings, detector_available=True)

        assert not plan.should_redact

    def test_mask_size_mismatch_rejected(self):
        mask = make_mask(50, 50, 0.5)
        with pytest.raises(GeometryError):
            decide([], mask, self.bodies(), detector_available=True, frame_size=(60, 50))

    def test_mask_dimensions_used_for_clipping(self):
        mask = make_mask(40, 40, 0.5)
        face = make_face(x1=30, y1=30, x2=60, y2=60, gender=Gender.FEMALE)

        plan = decide([face], mask, self.bodies(), detector_available=True)

        assert plan.faces == (FaceRegion(30, 30, 40, 40),)


class TestPlanAudit:

    def test_audit_dict(self):
        mask = make_mask(10, 10, 0.3)
        plan = decide([], mask, PolicySettings(body_coverage_threshold=0.01), detector_available=True)

        audit = plan.to_audit_dict()

        assert audit["should_redact"] is True
        assert audit["redaction_method"] == "body_mask"
        assert audit["mask_coverage"] == 0.3
        assert audit["face_regions"] == []

    def test_default_plan_is_inert(self):
        plan = RedactionPlan()
        assert plan.redaction_method == "none"
        assert not plan.redacts_body


class TestDecisionEngine:

    def test_stats(self):
        engine = DecisionEngine()

        engine.decide([], None, PolicySettings(), detector_available=False)
        engine.decide([make_face()], None, PolicySettings(), detector_available=True)
        engine.decide([], None, NOTHING, detector_available=True)

        assert engine.get_stats() == {"decisions": 3, "fallbacks": 1, "redactions": 2}
