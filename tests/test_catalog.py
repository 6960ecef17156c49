import unittest

from pydantic import ValidationError

from elysian_core.catalog import (
    POSE_MODEL_ID,
    STYLE_MODEL_ID,
    ModelCatalog,
    ModelDescriptor,
    ModelTask,
    builtin_catalog,
)
from elysian_core.errors import DuplicateModel, ModelNotFound, UnsupportedTask
from elysian_core.models import PROCESSOR_TYPES, build_processors, processor_for


def _descriptor(model_id: str = "custom-pose") -> ModelDescriptor:
    return ModelDescriptor(
        id=model_id,
        name="Custom Pose",
        task=ModelTask.POSE,
        weights_path="custom.onnx",
        input_shape=(1, 3, 256, 256),
        output_shape=(1, 17, 32, 32),
        requirements={"memory_mb": 10, "gpu_preferred": False},
        performance={"speed": "fast", "quality": "basic"},
    )


class ModelCatalogTests(unittest.TestCase):
    def test_builtin_catalog_contents(self):
        catalog = builtin_catalog()
        ids = catalog.ids()
        self.assertEqual(
            ids,
            ["pose-estimation-light", "artistic-style-classic", "real-esrgan-x2", "portrait-enhancer"],
        )
        pose = catalog.lookup(POSE_MODEL_ID)
        self.assertEqual(pose.input_shape, (1, 3, 368, 368))
        self.assertEqual(pose.output_shape, (1, 17, 46, 46))
        self.assertFalse(pose.requirements.gpu_preferred)
        self.assertTrue(catalog.lookup(STYLE_MODEL_ID).requirements.gpu_preferred)
        for model in catalog.list_all():
            self.assertFalse(model.loaded)

    def test_builtin_catalogs_are_independent(self):
        first = builtin_catalog()
        second = builtin_catalog()
        first.lookup(POSE_MODEL_ID).attach_session(object())
        self.assertFalse(second.lookup(POSE_MODEL_ID).loaded)

    def test_register_rejects_duplicate_id(self):
        catalog = ModelCatalog()
        catalog.register(_descriptor())
        with self.assertRaises(DuplicateModel) as ctx:
            catalog.register(_descriptor())
        self.assertEqual(ctx.exception.model_id, "custom-pose")
        self.assertEqual(len(catalog), 1)

    def test_lookup_unknown_id(self):
        catalog = builtin_catalog()
        with self.assertRaises(ModelNotFound) as ctx:
            catalog.lookup("does-not-exist")
        self.assertEqual(ctx.exception.code, "model_not_found")
        self.assertIn("does-not-exist", str(ctx.exception))

    def test_list_all_returns_detached_snapshots(self):
        catalog = builtin_catalog()
        before = {model.id: model for model in catalog.list_all()}

        catalog.lookup(POSE_MODEL_ID).attach_session(object())

        self.assertFalse(before[POSE_MODEL_ID].loaded)
        after = {model.id: model for model in catalog.list_all()}
        self.assertTrue(after[POSE_MODEL_ID].loaded)
        self.assertFalse(hasattr(after[POSE_MODEL_ID], "session"))

    def test_snapshots_are_read_only(self):
        snapshot = builtin_catalog().list_all()[0]
        with self.assertRaises(ValidationError):
            snapshot.loaded = True

    def test_session_invariant_helpers(self):
        descriptor = _descriptor()
        session = object()
        descriptor.attach_session(session)
        self.assertTrue(descriptor.loaded)
        self.assertIs(descriptor.session, session)

        self.assertIs(descriptor.detach_session(), session)
        self.assertFalse(descriptor.loaded)
        self.assertIsNone(descriptor.session)


class ProcessorRegistryTests(unittest.TestCase):
    def test_every_task_is_mapped(self):
        self.assertEqual(set(PROCESSOR_TYPES), set(ModelTask))

    def test_diffusion_is_unsupported(self):
        processors = build_processors()
        with self.assertRaises(UnsupportedTask):
            processor_for(processors, ModelTask.DIFFUSION)
        self.assertEqual(processor_for(processors, ModelTask.POSE).task, ModelTask.POSE)


if __name__ == "__main__":
    unittest.main()
