"""
Abstract accessor interface for job intents and builds.

This module defines the contract the reconciliation core consumes. Any
backing store (a cluster API, a reactive cache, a database) can implement it
as long as reads return the latest known state and writes are checked with
optimistic concurrency.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from .models import Build, ProwJob


class Accessor(ABC):
    """
    Abstract base class for resource reads and writes.

    Implementations signal expected outcomes with NotFoundError,
    AlreadyExistsError and ConflictError from build_common.errors. Any other
    exception is treated as a transient failure.
    """

    @abstractmethod
    async def get_job(self, name: str) -> ProwJob:
        """
        Retrieve a job by name from the control namespace.

        Args:
            name: Name of the job

        Returns:
            The current ProwJob

        Raises:
            NotFoundError: If the job does not exist
        """
        pass

    @abstractmethod
    async def update_job(self, job: ProwJob) -> ProwJob:
        """
        Write a job back.

        Args:
            job: Job carrying the resource version it was read at

        Returns:
            The job as stored, with its new resource version

        Raises:
            NotFoundError: If the job no longer exists
            ConflictError: If the job changed since it was read
        """
        pass

    @abstractmethod
    async def list_jobs(self, namespace: str) -> list[ProwJob]:
        """
        List all jobs in a namespace.

        Args:
            namespace: Namespace to list

        Returns:
            List of ProwJob objects
        """
        pass

    @abstractmethod
    async def get_execution(self, context: str, namespace: str, name: str) -> Build:
        """
        Retrieve a build.

        Args:
            context: Cluster context the build lives in
            namespace: Namespace of the build
            name: Name of the build

        Returns:
            The current Build

        Raises:
            NotFoundError: If the build does not exist
        """
        pass

    @abstractmethod
    async def create_execution(
        self, context: str, namespace: str, build: Build
    ) -> Build:
        """
        Create a build.

        Args:
            context: Cluster context to create the build in
            namespace: Namespace to create the build in
            build: Build to create

        Returns:
            The build as stored

        Raises:
            AlreadyExistsError: If a build with the same name exists
        """
        pass

    @abstractmethod
    async def delete_execution(self, context: str, namespace: str, name: str) -> None:
        """
        Delete a build.

        Raises:
            NotFoundError: If the build does not exist
        """
        pass

    @abstractmethod
    async def list_execution_keys(self) -> list[str]:
        """
        List the reconcile keys of all builds, across every cluster context.

        Used by the controller loop to notice builds whose job is gone.
        """
        pass

    @abstractmethod
    async def new_build_id(self, job: ProwJob) -> str:
        """
        Allocate a unique identifier for the next build of a job.

        Args:
            job: Job the build is created for

        Returns:
            Opaque unique build identifier
        """
        pass

    @abstractmethod
    def now(self) -> datetime:
        """Current time, as used for job status timestamps."""
        pass
