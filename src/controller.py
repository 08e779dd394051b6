"""
Runtime Operator Controller - watches and worker pool.

Watches KogitoRuntime objects and the objects they own, turns accepted
notifications into work queue keys and runs reconcile passes on a pool of
workers. Pass outcomes are kept in a bounded history and published on the
event bus.
"""

import asyncio
import logging
import time
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Deque, List, Optional, Tuple

import aiohttp
from kubernetes_asyncio import watch
from kubernetes_asyncio.client import ApiException

from config import ControllerConfig, KubernetesConfig
from events import EventBus, EventType, PassEvent, PassOutcome, RuntimePredicate, WatchEvent
from reconciler import RuntimeReconciler
from resources import API_VERSION, GROUP, KIND, PLURAL, VERSION, NamespacedName
from workqueue import ShutDown, WorkQueue

logger = logging.getLogger(__name__)

WATCH_ERRORS = (ApiException, aiohttp.ClientError, asyncio.TimeoutError)


def owner_of(obj: dict) -> Optional[NamespacedName]:
    """Identity of the KogitoRuntime controlling ``obj``, if any."""
    metadata = obj.get("metadata") or {}
    for ref in metadata.get("ownerReferences") or []:
        if (
            ref.get("controller")
            and ref.get("kind") == KIND
            and ref.get("apiVersion") == API_VERSION
        ):
            return NamespacedName(metadata.get("namespace", ""), ref["name"])
    return None


class Controller:
    """
    Main controller that drives reconcile passes.

    Watch handlers only enqueue keys; the work queue guarantees that a
    given KogitoRuntime is reconciled by at most one worker at a time.
    """

    def __init__(
        self,
        clients: Any,
        reconciler: RuntimeReconciler,
        config: Optional[ControllerConfig] = None,
        kube_config: Optional[KubernetesConfig] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.clients = clients
        self.reconciler = reconciler
        self.config = config or ControllerConfig()
        self.kube_config = kube_config or KubernetesConfig()
        self.event_bus = event_bus
        self.predicate = RuntimePredicate()
        self.queue = WorkQueue(
            base_delay=self.config.backoff_base_delay,
            max_delay=self.config.backoff_max_delay,
            jitter_factor=self.config.backoff_jitter_factor,
        )
        self.running = False
        self._history: Deque[PassEvent] = deque(maxlen=self.config.pass_history_size)
        self._tasks: List[asyncio.Task] = []

    # Watch event handling

    def handle_runtime_event(self, event: WatchEvent) -> bool:
        """Enqueue the KogitoRuntime behind ``event`` if the filter accepts it."""
        if not self.predicate(event):
            logger.debug(
                f"Filtered {event.event_type.value} event for "
                f"{(event.obj.get('metadata') or {}).get('name')}"
            )
            return False
        self.enqueue(NamespacedName.from_object(event.obj))
        return True

    def handle_owned_event(self, event: WatchEvent) -> bool:
        """Enqueue the owning KogitoRuntime of a changed dependent object."""
        if event.event_type not in (
            EventType.ADDED,
            EventType.MODIFIED,
            EventType.DELETED,
        ):
            return False
        owner = owner_of(event.obj)
        if owner is None:
            return False
        self.enqueue(owner)
        return True

    def enqueue(self, key: NamespacedName) -> None:
        """Request a reconcile pass for ``key``."""
        logger.debug(f"Enqueued {key}")
        self.queue.add(key)

    # Watches

    def _namespaces(self) -> List[Optional[str]]:
        return list(self.kube_config.watch_namespaces) or [None]

    def watch_targets(
        self,
    ) -> List[Tuple[str, Callable, tuple, Callable[[WatchEvent], bool]]]:
        """
        Build (kind, list function, args, handler) tuples for every watch.

        Route and ImageStream watches are only set up on OpenShift.
        """
        custom = self.clients.custom
        apps = self.clients.apps
        core = self.clients.core
        targets = []

        def custom_target(kind, group, version, plural, handler):
            for ns in self._namespaces():
                if ns is None:
                    fn, args = custom.list_cluster_custom_object, (group, version, plural)
                else:
                    fn = custom.list_namespaced_custom_object
                    args = (group, version, ns, plural)
                targets.append((kind, fn, args, handler))

        def typed_target(kind, cluster_fn, namespaced_fn):
            for ns in self._namespaces():
                if ns is None:
                    targets.append((kind, cluster_fn, (), self.handle_owned_event))
                else:
                    targets.append((kind, namespaced_fn, (ns,), self.handle_owned_event))

        custom_target(KIND, GROUP, VERSION, PLURAL, self.handle_runtime_event)
        typed_target(
            "Deployment",
            apps.list_deployment_for_all_namespaces,
            apps.list_namespaced_deployment,
        )
        typed_target(
            "Service",
            core.list_service_for_all_namespaces,
            core.list_namespaced_service,
        )
        typed_target(
            "ConfigMap",
            core.list_config_map_for_all_namespaces,
            core.list_namespaced_config_map,
        )
        if getattr(self.clients, "is_openshift", False):
            custom_target(
                "Route", "route.openshift.io", "v1", "routes", self.handle_owned_event
            )
            custom_target(
                "ImageStream",
                "image.openshift.io",
                "v1",
                "imagestreams",
                self.handle_owned_event,
            )
        return targets

    async def _watch(
        self,
        kind: str,
        list_fn: Callable,
        args: tuple,
        handler: Callable[[WatchEvent], bool],
    ) -> None:
        """Stream events for one kind, restarting the watch until stopped."""
        while self.running:
            try:
                w = watch.Watch()
                async with w.stream(
                    list_fn,
                    *args,
                    timeout_seconds=self.kube_config.watch_timeout_seconds,
                ) as stream:
                    async for raw in stream:
                        try:
                            handler(WatchEvent.from_raw(raw))
                        except Exception as e:
                            logger.error(
                                f"Skipping malformed {kind} watch event: {e}",
                                exc_info=True,
                            )
            except WATCH_ERRORS as e:
                logger.warning(
                    f"Watch on {kind} failed, restarting in "
                    f"{self.kube_config.watch_retry_delay}s: {e}"
                )
                await asyncio.sleep(self.kube_config.watch_retry_delay)

    # Workers

    async def _worker(self, worker_id: int) -> None:
        logger.debug(f"Worker {worker_id} started")
        while True:
            try:
                key = await self.queue.get()
            except ShutDown:
                logger.debug(f"Worker {worker_id} stopped")
                return
            try:
                await self.process(key)
            finally:
                self.queue.done(key)

    async def process(self, key: NamespacedName) -> PassEvent:
        """Run one reconcile pass for ``key`` and schedule any follow-up."""
        start_time = time.monotonic()
        try:
            result = await self.reconciler.reconcile(key)
        except Exception as e:
            delay = self.queue.add_rate_limited(key)
            logger.error(
                f"Error reconciling {key}, retrying in {delay:.1f}s: {e}",
                exc_info=True,
            )
            return self._record(key, PassOutcome.FAILED, start_time, error=str(e))

        self.queue.forget(key)
        if result.requeue:
            self.queue.add_after(key, result.requeue_after)
            return self._record(
                key,
                PassOutcome.REQUEUED,
                start_time,
                requeue_after=result.requeue_after,
            )
        return self._record(key, PassOutcome.DONE, start_time)

    def _record(
        self,
        key: NamespacedName,
        outcome: PassOutcome,
        start_time: float,
        requeue_after: Optional[int] = None,
        error: Optional[str] = None,
    ) -> PassEvent:
        event = PassEvent(
            namespace=key.namespace,
            name=key.name,
            outcome=outcome,
            timestamp=datetime.now(timezone.utc).isoformat(),
            duration_seconds=round(time.monotonic() - start_time, 3),
            requeue_after=requeue_after,
            error=error,
        )
        self._history.append(event)
        if self.event_bus:
            self.event_bus.publish(event)
        return event

    def recent_passes(
        self,
        namespace: Optional[str] = None,
        name: Optional[str] = None,
        limit: int = 50,
    ) -> List[PassEvent]:
        """Most recent pass records first, optionally filtered by identity."""
        passes = []
        for event in reversed(self._history):
            if namespace and event.namespace != namespace:
                continue
            if name and event.name != name:
                continue
            passes.append(event)
            if len(passes) >= limit:
                break
        return passes

    # Lifecycle

    def is_ready(self) -> bool:
        return self.running and bool(self._tasks) and not any(
            task.done() for task in self._tasks
        )

    async def start(self) -> None:
        """Start watches and workers and run until stopped."""
        logger.info(
            f"Starting Runtime Operator Controller with "
            f"{self.config.max_concurrent_reconciles} workers"
        )
        self.running = True

        for worker_id in range(self.config.max_concurrent_reconciles):
            self._tasks.append(asyncio.create_task(self._worker(worker_id)))
        for kind, list_fn, args, handler in self.watch_targets():
            self._tasks.append(
                asyncio.create_task(self._watch(kind, list_fn, args, handler))
            )
            logger.info(f"Watching {kind}")

        try:
            await asyncio.gather(*self._tasks)
        except asyncio.CancelledError:
            logger.info("Controller tasks cancelled")

    async def stop(self) -> None:
        """Stop watches and workers."""
        logger.info("Stopping Runtime Operator Controller")
        self.running = False
        await self.queue.shutdown()
        for task in self._tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
