import asyncio
import gc
import unittest

from elysian_core.catalog import POSE_MODEL_ID, STYLE_MODEL_ID, UPSCALE_MODEL_ID, builtin_catalog
from elysian_core.errors import LoadFailure, ModelNotFound
from elysian_core.loader import LoadCoordinator
from elysian_core.session import GENERIC_BACKEND, GPU_BACKEND

from helpers import FakeProvider, weights_of


class LoadCoordinatorTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.catalog = builtin_catalog()
        self.provider = FakeProvider()
        self.loader = LoadCoordinator(self.catalog, self.provider)

    async def test_concurrent_loads_build_one_session(self):
        self.provider.gate = asyncio.Event()
        waiters = [asyncio.create_task(self.loader.ensure_loaded(STYLE_MODEL_ID)) for _ in range(10)]
        await asyncio.sleep(0)
        self.provider.gate.set()

        descriptors = await asyncio.gather(*waiters)

        self.assertEqual(self.provider.calls_for(STYLE_MODEL_ID), 1)
        self.assertTrue(all(descriptor is descriptors[0] for descriptor in descriptors))
        self.assertTrue(descriptors[0].loaded)
        self.assertIs(descriptors[0].session, self.provider.sessions[weights_of(STYLE_MODEL_ID)])

    async def test_loaded_model_is_not_reloaded(self):
        await self.loader.ensure_loaded(POSE_MODEL_ID)
        await self.loader.ensure_loaded(POSE_MODEL_ID)
        self.assertEqual(len(self.provider.calls), 1)

    async def test_unknown_model_never_reaches_provider(self):
        with self.assertRaises(ModelNotFound):
            await self.loader.ensure_loaded("missing-model")
        self.assertEqual(self.provider.calls, [])

    async def test_status_while_loading_and_after_success(self):
        self.assertEqual(self.loader.get_status(POSE_MODEL_ID).model_dump(), {"loaded": False, "loading": False})

        self.provider.gate = asyncio.Event()
        pending = asyncio.create_task(self.loader.ensure_loaded(POSE_MODEL_ID))
        await asyncio.sleep(0)

        self.assertEqual(self.loader.get_status(POSE_MODEL_ID).model_dump(), {"loaded": False, "loading": True})
        self.assertIsNotNone(self.loader.in_flight(POSE_MODEL_ID))

        self.provider.gate.set()
        await pending

        self.assertEqual(self.loader.get_status(POSE_MODEL_ID).model_dump(), {"loaded": True, "loading": False})
        self.assertIsNone(self.loader.in_flight(POSE_MODEL_ID))

    async def test_failed_load_is_shared_and_retryable(self):
        self.provider.fail_paths.add(weights_of(UPSCALE_MODEL_ID))
        self.provider.gate = asyncio.Event()
        waiters = [asyncio.create_task(self.loader.ensure_loaded(UPSCALE_MODEL_ID)) for _ in range(3)]
        await asyncio.sleep(0)
        self.provider.gate.set()

        results = await asyncio.gather(*waiters, return_exceptions=True)

        self.assertTrue(all(isinstance(result, LoadFailure) for result in results))
        self.assertTrue(all(result is results[0] for result in results))
        self.assertIn("Real-ESRGAN 2x Upscaler", str(results[0]))
        self.assertIsInstance(results[0].cause, RuntimeError)
        self.assertEqual(self.provider.calls_for(UPSCALE_MODEL_ID), 1)

        descriptor = self.catalog.lookup(UPSCALE_MODEL_ID)
        self.assertFalse(descriptor.loaded)
        self.assertIsNone(descriptor.session)
        self.assertEqual(self.loader.get_status(UPSCALE_MODEL_ID).model_dump(), {"loaded": False, "loading": False})

        self.provider.fail_paths.clear()
        await self.loader.ensure_loaded(UPSCALE_MODEL_ID)
        self.assertTrue(descriptor.loaded)
        self.assertEqual(self.provider.calls_for(UPSCALE_MODEL_ID), 2)

    async def test_different_models_load_independently(self):
        await asyncio.gather(
            self.loader.ensure_loaded(POSE_MODEL_ID),
            self.loader.ensure_loaded(STYLE_MODEL_ID),
        )
        self.assertEqual(self.provider.calls_for(POSE_MODEL_ID), 1)
        self.assertEqual(self.provider.calls_for(STYLE_MODEL_ID), 1)

    async def test_cancelled_caller_does_not_cancel_shared_load(self):
        self.provider.gate = asyncio.Event()
        first = asyncio.create_task(self.loader.ensure_loaded(POSE_MODEL_ID))
        second = asyncio.create_task(self.loader.ensure_loaded(POSE_MODEL_ID))
        await asyncio.sleep(0)

        first.cancel()
        self.provider.gate.set()
        await second

        self.assertTrue(self.catalog.lookup(POSE_MODEL_ID).loaded)
        self.assertEqual(self.provider.calls_for(POSE_MODEL_ID), 1)

    async def test_failed_load_with_no_remaining_waiters_is_not_reported_unhandled(self):
        unhandled = []
        asyncio.get_running_loop().set_exception_handler(lambda loop, context: unhandled.append(context))
        self.provider.fail_paths.add(weights_of(UPSCALE_MODEL_ID))
        self.provider.gate = asyncio.Event()

        waiter = asyncio.create_task(self.loader.ensure_loaded(UPSCALE_MODEL_ID))
        await asyncio.sleep(0)
        load = self.loader.in_flight(UPSCALE_MODEL_ID)
        waiter.cancel()
        self.provider.gate.set()
        with self.assertRaises(asyncio.CancelledError):
            await waiter
        await asyncio.wait([load])

        self.assertTrue(load.done() and not load.cancelled())
        self.assertIsNone(self.loader.in_flight(UPSCALE_MODEL_ID))
        del load
        gc.collect()
        self.assertEqual(unhandled, [])

    async def test_backend_preference(self):
        await self.loader.ensure_loaded(POSE_MODEL_ID)
        await self.loader.ensure_loaded(STYLE_MODEL_ID)
        backends = dict(self.provider.calls)
        self.assertEqual(backends[weights_of(POSE_MODEL_ID)], [GENERIC_BACKEND])
        self.assertEqual(backends[weights_of(STYLE_MODEL_ID)], [GPU_BACKEND, GENERIC_BACKEND])

    async def test_gpu_can_be_disabled(self):
        loader = LoadCoordinator(self.catalog, self.provider, prefer_gpu=False)
        await loader.ensure_loaded(STYLE_MODEL_ID)
        self.assertEqual(self.provider.calls[0][1], [GENERIC_BACKEND])


if __name__ == "__main__":
    unittest.main()
