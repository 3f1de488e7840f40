"""
Build controller with reconciliation loop for managing builds.

This module implements a Kubernetes-style controller pattern that periodically
collects every key that may need attention (owned jobs and existing builds),
reconciles each of them, and sweeps for superseded duplicate jobs.
"""

import asyncio
import logging

from build_common.accessor import Accessor
from build_common.errors import InvalidKeyError
from build_common.keys import cluster_to_context, from_key, to_key

from .config import ControllerConfig
from .duplicates import DuplicateTerminator
from .reconciler import Reconciler

logger = logging.getLogger(__name__)


class BuildController:
    """
    Controller that reconciles job intents with builds.

    This controller runs a continuous loop that:
    1. Collects keys from jobs in the control namespace and from builds
    2. Reconciles keys concurrently, never running one key twice at once
    3. Cancels superseded duplicate jobs in every known cluster context
    """

    def __init__(self, accessor: Accessor, config: ControllerConfig | None = None):
        """
        Initialize the build controller.

        Args:
            accessor: Reads and writes jobs and builds
            config: Controller settings
        """
        self.accessor = accessor
        self.config = config or ControllerConfig()
        self.reconciler = Reconciler(
            accessor,
            agent=self.config.agent,
            default_timeout=self.config.default_timeout,
        )
        self.terminator = DuplicateTerminator(
            accessor, self.config, agent=self.config.agent
        )

        self._in_flight: set[str] = set()
        self._semaphore = asyncio.Semaphore(max(1, self.config.workers))
        self._running = False
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        """Start the controller reconciliation loop."""
        if self._running:
            logger.warning("Controller already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Build controller started")

    async def stop(self) -> None:
        """Stop the controller."""
        if not self._running:
            return

        logger.info("Stopping build controller...")
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Build controller stopped")

    async def _run_loop(self) -> None:
        """Main reconciliation loop."""
        while self._running:
            try:
                await self.reconcile_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in reconciliation loop: {e}", exc_info=True)
            await asyncio.sleep(self.config.reconcile_interval)

    async def collect_keys(self) -> set[str]:
        """Keys of every owned job and every existing build."""
        keys = set()
        for job in await self.accessor.list_jobs(self.config.namespace):
            if job.spec.agent != self.config.agent:
                continue
            context = cluster_to_context(job.spec.cluster)
            keys.add(to_key(context, job.namespace, job.name))
        keys.update(await self.accessor.list_execution_keys())
        return keys

    async def reconcile_once(self) -> None:
        """
        Perform one reconciliation cycle.

        Failures of individual keys are logged and retried on the next cycle.
        """
        keys = await self.collect_keys()
        logger.debug(f"Reconciliation: found {len(keys)} keys")

        await asyncio.gather(*(self.enqueue(key) for key in sorted(keys)))

        contexts = set(self.config.contexts)
        for key in keys:
            try:
                contexts.add(from_key(key)[0])
            except InvalidKeyError:
                continue
        for context in sorted(contexts):
            try:
                await self.terminator.terminate_duplicates(
                    context, self.config.namespace
                )
            except Exception as e:
                logger.error(f"Error terminating duplicate jobs in {context}: {e}")

    async def enqueue(self, key: str) -> bool:
        """
        Reconcile a single key unless it is already being reconciled.

        Args:
            key: Reconcile key

        Returns:
            True if the key was reconciled successfully
        """
        if key in self._in_flight:
            logger.debug(f"Skipping {key}, already in flight")
            return False

        self._in_flight.add(key)
        try:
            async with self._semaphore:
                await self.reconciler.reconcile(key)
            return True
        except InvalidKeyError as e:
            logger.error(f"Dropping invalid key {key!r}: {e}")
            return False
        except Exception as e:
            logger.error(f"Error reconciling {key}: {e}", exc_info=True)
            return False
        finally:
            self._in_flight.discard(key)
