import pytest
from celery.exceptions import SoftTimeLimitExceeded

from app.errors import EncodeError
from app.models.job import ImageStatus, JobStatus
from app.services.pipeline import RequestPipeline
from app.services.report import parse_report



def _ingest(store, rows):
    request_id = store.create_request()
    store.create_products(request_id, rows)
    return request_id


def _pipeline(store, transformer, reporter, notifier, failure_mode="fail_fast"):
    return RequestPipeline(
        store=store,
        transformer=transformer,
        reporter=reporter,
        notifier=notifier,
        failure_mode=failure_mode,
    )


def _report_files(reporter):
    return list(reporter.root.glob("*.csv")) if reporter.root.exists() else []


def test_single_row_completes_reports_and_notifies(store, transformer, reporter, notifier, make_rows):
    rows = make_rows(("Chair", ["https://img.test/a.jpg"]))
    request_id = _ingest(store, rows)

    status = _pipeline(store, transformer, reporter, notifier).run(request_id, rows)

    assert status is JobStatus.completed
    assert store.get_request_status(request_id) is JobStatus.completed

    images = store.list_images(request_id)
    assert [(image.processing_status, image.output_url) for image in images] == [
        (ImageStatus.completed, "https://cdn.test/compressed/1.jpg")
    ]

    [report] = _report_files(reporter)
    parsed = parse_report(report.read_text(encoding="utf-8"))
    assert len(parsed) == 1
    assert parsed[0].serial_number == "1"
    assert parsed[0].input_urls == ["https://img.test/a.jpg"]
    assert parsed[0].output_urls == ["https://cdn.test/compressed/1.jpg"]

    assert notifier.calls == [(request_id, f"https://files.test/files/reports/{report.name}")]


def test_urls_are_processed_in_row_then_url_order(store, transformer, reporter, notifier, make_rows):
    rows = make_rows(
        ("Chair", ["https://img.test/a.jpg", "https://img.test/b.jpg"]),
        ("Table", ["https://img.test/c.jpg"]),
    )
    request_id = _ingest(store, rows)

    _pipeline(store, transformer, reporter, notifier).run(request_id, rows)

    assert transformer.calls == ["https://img.test/a.jpg", "https://img.test/b.jpg", "https://img.test/c.jpg"]
    [report] = _report_files(reporter)
    parsed = parse_report(report.read_text(encoding="utf-8"))
    assert [row.output_urls for row in parsed] == [
        ["https://cdn.test/compressed/1.jpg", "https://cdn.test/compressed/2.jpg"],
        ["https://cdn.test/compressed/3.jpg"],
    ]


def test_first_failure_stops_the_request(store, reporter, notifier, make_rows, make_transformer):
    rows = make_rows(
        ("Chair", ["https://img.test/broken.jpg", "https://img.test/b.jpg"]),
        ("Table", ["https://img.test/c.jpg"]),
    )
    request_id = _ingest(store, rows)
    transformer = make_transformer(fail_on={"https://img.test/broken.jpg"})

    status = _pipeline(store, transformer, reporter, notifier).run(request_id, rows)

    assert status is JobStatus.failed
    assert store.get_request_status(request_id) is JobStatus.failed
    assert transformer.calls == ["https://img.test/broken.jpg"]
    assert [image.processing_status for image in store.list_images(request_id)] == [
        ImageStatus.failed,
        ImageStatus.pending,
        ImageStatus.pending,
    ]
    assert _report_files(reporter) == []
    assert notifier.calls == []


def test_isolate_mode_attempts_every_url(store, reporter, notifier, make_rows, make_transformer):
    rows = make_rows(
        ("Chair", ["https://img.test/broken.jpg", "https://img.test/b.jpg"]),
        ("Table", ["https://img.test/c.jpg"]),
    )
    request_id = _ingest(store, rows)
    transformer = make_transformer(fail_on={"https://img.test/broken.jpg"})

    status = _pipeline(store, transformer, reporter, notifier, failure_mode="isolate").run(request_id, rows)

    assert status is JobStatus.failed
    assert transformer.calls == ["https://img.test/broken.jpg", "https://img.test/b.jpg", "https://img.test/c.jpg"]
    assert [image.processing_status for image in store.list_images(request_id)] == [
        ImageStatus.failed,
        ImageStatus.completed,
        ImageStatus.completed,
    ]
    assert _report_files(reporter) == []
    assert notifier.calls == []


def test_encode_errors_fail_the_request(store, reporter, notifier, make_rows):
    class BrokenEncoder:
        def transform(self, url):
            raise EncodeError("cannot identify image file")

    rows = make_rows(("Chair", ["https://img.test/a.jpg"]))
    request_id = _ingest(store, rows)

    assert _pipeline(store, BrokenEncoder(), reporter, notifier).run(request_id, rows) is JobStatus.failed
    assert store.get_request_status(request_id) is JobStatus.failed


def test_report_write_failure_fails_the_request(store, transformer, notifier, make_rows):
    class BrokenReporter:
        def generate(self, rows, request_id=None):
            raise OSError("disk full")

    rows = make_rows(("Chair", ["https://img.test/a.jpg"]))
    request_id = _ingest(store, rows)

    assert _pipeline(store, transformer, BrokenReporter(), notifier).run(request_id, rows) is JobStatus.failed
    assert store.get_request_status(request_id) is JobStatus.failed
    assert notifier.calls == []


def test_empty_request_completes_with_header_only_report(store, transformer, reporter, notifier):
    request_id = _ingest(store, [])

    status = _pipeline(store, transformer, reporter, notifier).run(request_id, [])

    assert status is JobStatus.completed
    [report] = _report_files(reporter)
    assert parse_report(report.read_text(encoding="utf-8")) == []
    assert len(notifier.calls) == 1


def test_finished_request_is_not_processed_again(store, transformer, reporter, notifier, make_rows):
    rows = make_rows(("Chair", ["https://img.test/a.jpg"]))
    request_id = _ingest(store, rows)
    pipeline = _pipeline(store, transformer, reporter, notifier)
    pipeline.run(request_id, rows)

    assert pipeline.run(request_id, rows) is JobStatus.completed
    assert transformer.calls == ["https://img.test/a.jpg"]
    assert len(notifier.calls) == 1


@pytest.mark.parametrize("fail_on", [set(), {"https://img.test/b.jpg"}])
def test_terminal_status_matches_image_outcomes(store, reporter, notifier, make_rows, make_transformer, fail_on):
    rows = make_rows(("Chair", ["https://img.test/a.jpg", "https://img.test/b.jpg"]))
    request_id = _ingest(store, rows)

    status = _pipeline(store, make_transformer(fail_on=fail_on), reporter, notifier).run(request_id, rows)

    statuses = [image.processing_status for image in store.list_images(request_id)]
    if status is JobStatus.completed:
        assert all(s is ImageStatus.completed for s in statuses)
    else:
        assert any(s is not ImageStatus.completed for s in statuses)
    assert status is (JobStatus.failed if fail_on else JobStatus.completed)


def test_repeated_url_failing_later_fails_its_images(store, reporter, notifier, make_rows, make_transformer):
    shared = "https://img.test/shared.jpg"
    rows = make_rows(("Chair", [shared]), ("Table", [shared]))
    request_id = _ingest(store, rows)

    status = _pipeline(store, make_transformer(fail_on_calls={2}), reporter, notifier).run(request_id, rows)

    assert status is JobStatus.failed
    statuses = [image.processing_status for image in store.list_images(request_id)]
    assert any(s is not ImageStatus.completed for s in statuses)
    assert notifier.calls == []


def test_repeated_url_keeps_the_reported_output(store, transformer, reporter, notifier, make_rows):
    shared = "https://img.test/shared.jpg"
    rows = make_rows(("Chair", [shared]), ("Table", [shared]))
    request_id = _ingest(store, rows)

    assert _pipeline(store, transformer, reporter, notifier).run(request_id, rows) is JobStatus.completed

    [report] = _report_files(reporter)
    reported = parse_report(report.read_text(encoding="utf-8"))[-1].output_urls
    stored = [image.output_url for image in store.list_images(request_id)]
    assert stored == reported * 2


def test_soft_time_limit_fails_the_request(store, reporter, notifier, make_rows):
    class SlowTransformer:
        def transform(self, url):
            raise SoftTimeLimitExceeded()

    rows = make_rows(("Chair", ["https://img.test/a.jpg"]))
    request_id = _ingest(store, rows)

    assert _pipeline(store, SlowTransformer(), reporter, notifier).run(request_id, rows) is JobStatus.failed
    assert store.get_request_status(request_id) is JobStatus.failed
