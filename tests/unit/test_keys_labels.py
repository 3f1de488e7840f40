"""
Unit tests for reconcile keys and build labels.
"""

import pytest

from build_common.errors import InvalidKeyError
from build_common.keys import cluster_to_context, from_key, to_key
from build_common.labels import (
    CREATED_BY_PROW,
    ORG_LABEL,
    PROW_JOB_NAME_LABEL,
    PROW_JOB_TYPE_LABEL,
    PULL_LABEL,
    REPO_LABEL,
    is_owned,
    label_value,
    labels_for_job,
)
from build_common.models import Build, ProwJob, ProwJobSpec, ProwJobType, Pull, Refs


class TestKeys:
    def test_round_trip(self):
        assert from_key(to_key("ctx", "ns", "name")) == ("ctx", "ns", "name")

    def test_empty_context_and_namespace_allowed(self):
        assert from_key("//name") == ("", "", "name")

    @pytest.mark.parametrize("key", ["", "name", "ns/name", "a/b/c/d", "ctx/ns/"])
    def test_malformed_keys(self, key):
        with pytest.raises(InvalidKeyError):
            from_key(key)

    def test_cluster_to_context(self):
        assert cluster_to_context("") == "default"
        assert cluster_to_context("build-cluster") == "build-cluster"


class TestLabels:
    def test_labels_for_presubmit(self):
        job = ProwJob(
            name="abc-123",
            labels={"extra": "yes"},
            spec=ProwJobSpec(
                type=ProwJobType.PRESUBMIT,
                job="pull-test-infra-bazel",
                refs=Refs(org="kubernetes", repo="test-infra", pulls=[Pull(number=7)]),
            ),
        )

        labels, annotations = labels_for_job(job)

        assert labels[CREATED_BY_PROW] == "true"
        assert labels[PROW_JOB_TYPE_LABEL] == "presubmit"
        assert labels[PROW_JOB_NAME_LABEL] == "pull-test-infra-bazel"
        assert labels[ORG_LABEL] == "kubernetes"
        assert labels[REPO_LABEL] == "test-infra"
        assert labels[PULL_LABEL] == "7"
        assert labels["extra"] == "yes"
        assert annotations[PROW_JOB_NAME_LABEL] == "pull-test-infra-bazel"

    def test_long_job_names_are_truncated_in_labels(self):
        name = "a" * 80
        job = ProwJob(name="x", spec=ProwJobSpec(job=name))

        labels, annotations = labels_for_job(job)

        assert labels[PROW_JOB_NAME_LABEL] == "a" * 63
        assert annotations[PROW_JOB_NAME_LABEL] == name

    def test_label_value_sanitizes(self):
        assert label_value("ci/job name!") == "cijobname"
        assert label_value("-edge.") == "edge"

    def test_is_owned(self):
        assert is_owned(Build(name="b", labels={CREATED_BY_PROW: "true"}))
        assert not is_owned(Build(name="b"))
        assert not is_owned(Build(name="b", labels={CREATED_BY_PROW: "false"}))
