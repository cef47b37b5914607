"""Tests for wire models, image identifiers and error helpers."""

from __future__ import annotations

from typing import List

from linodepool.errors import ProviderError, first_error, lower_first
from linodepool.image import ImageID
from linodepool.models import Distribution, Envelope, JobInfo, LinodeRecord, ServerStatus


class TestImageID:
    def test_system_id(self):
        assert ImageID("ubuntu-16.04").system_id == "ubuntu-16.04"

    def test_system_id_drops_suffix(self):
        assert ImageID("ubuntu-16.04-64").system_id == "ubuntu-16.04"

    def test_label(self):
        image = ImageID("debian-8")
        assert image.label("root") == "spread-debian-8-root"
        assert image.label() == "spread-debian-8"
        assert image.label("swap", prefix="") == "debian-8-swap"

    def test_is_a_string(self):
        assert ImageID("debian-8") == "debian-8"


class TestLowerFirst:
    def test_lowers_first_letter_only(self):
        assert lower_first("Linode ID Is Invalid") == "linode ID Is Invalid"

    def test_empty(self):
        assert lower_first("") == ""

    def test_provider_error(self):
        err = ProviderError(5, "Object not found")
        assert str(err) == "object not found"
        assert err.code == 5


class TestFirstError:
    def test_picks_first(self):
        a, b = ValueError("a"), ValueError("b")
        assert first_error(None, a, b) is a

    def test_none(self):
        assert first_error(None, None) is None


class TestEnvelope:
    def test_data_dropped_on_error(self):
        env = Envelope[List[Distribution]].model_validate({
            "ERRORARRAY": [{"ERRORCODE": 4, "ERRORMESSAGE": "Auth failed"}],
            "DATA": {},
        })
        assert env.data is None
        assert str(env.error()) == "auth failed"

    def test_only_first_error_reported(self):
        env = Envelope[dict].model_validate({
            "ERRORARRAY": [
                {"ERRORCODE": 1, "ERRORMESSAGE": "First"},
                {"ERRORCODE": 2, "ERRORMESSAGE": "Second"},
            ],
        })
        assert env.error().code == 1

    def test_no_errors(self):
        env = Envelope[dict].model_validate({"ERRORARRAY": [], "DATA": {"a": 1}})
        assert env.error() is None
        env.raise_for_error()


class TestRecords:
    def test_linode_record(self):
        record = LinodeRecord.model_validate({"LINODEID": 9, "LABEL": "x", "STATUS": 2, "TOTALHD": 1})
        assert record.status == ServerStatus.POWERED_OFF

    def test_unknown_status_accepted(self):
        assert LinodeRecord.model_validate({"LINODEID": 9, "STATUS": 3}).status == 3

    def test_job_info_flags(self):
        job = JobInfo.model_validate({"JOBID": 1, "HOST_FINISH_DT": "2016", "HOST_SUCCESS": 1})
        assert job.finished and job.succeeded
        assert not JobInfo(job_id=2).finished
