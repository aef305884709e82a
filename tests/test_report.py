from app.models.request import ProcessedProductRow
from app.services.report import parse_report, render_report

ROWS = [
    ProcessedProductRow(
        serial_number="1",
        product_name="Chair, oak",
        input_urls=["https://img.test/a.jpg", "https://img.test/b.jpg"],
        output_urls=["https://cdn.test/1.jpg", "https://cdn.test/2.jpg"],
    ),
    ProcessedProductRow(
        serial_number="2",
        product_name='Table "Nordic"',
        input_urls=["https://img.test/c.jpg"],
        output_urls=["https://cdn.test/3.jpg"],
    ),
]


def test_render_report_layout():
    text = render_report(ROWS)

    assert text.splitlines() == [
        "S. No.,Product Name,Input Image Urls,Output Image Urls",
        '1,"Chair, oak","https://img.test/a.jpg, https://img.test/b.jpg","https://cdn.test/1.jpg, https://cdn.test/2.jpg"',
        '2,"Table ""Nordic""",https://img.test/c.jpg,https://cdn.test/3.jpg',
    ]


def test_render_report_is_deterministic():
    assert render_report(ROWS).encode() == render_report([row.model_copy() for row in ROWS]).encode()


def test_report_round_trip():
    assert parse_report(render_report(ROWS)) == ROWS


def test_empty_report_has_only_the_header():
    assert render_report([]) == "S. No.,Product Name,Input Image Urls,Output Image Urls\n"
    assert parse_report(render_report([])) == []


def test_generate_writes_file_and_links_it(reporter):
    artifact = reporter.generate(ROWS, request_id="req_abc")

    assert artifact.path.parent == reporter.root
    assert artifact.path.name.startswith("output_req_abc_")
    assert artifact.url == f"https://files.test/files/reports/{artifact.path.name}"
    assert artifact.path.read_text(encoding="utf-8") == render_report(ROWS)
