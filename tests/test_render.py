from pathlib import Path

from flashed.render import apply_seo, write_document, write_session
from flashed.state import Artifact, JobStatus, SEOSettings, Session, Site, SitePage

from conftest import make_html


def test_apply_seo_replaces_existing_tags() -> None:
    doc = (
        "<html><head><title>Old</title>"
        '<meta name="description" content="old">'
        '<meta property="og:title" content="old">'
        '<meta charset="utf-8">'
        "</head><body>x</body></html>"
    )
    seo = SEOSettings(title="Beans & Co", description='Say "hello"', og_image="https://img/og.png")

    result = apply_seo(doc, seo)

    assert "Old" not in result
    assert 'content="old"' not in result
    assert '<meta charset="utf-8">' in result
    assert "<title>Beans &amp; Co</title>" in result
    assert '<meta name="description" content="Say &quot;hello&quot;">' in result
    assert '<meta property="og:image" content="https://img/og.png">' in result
    assert result.index("<title>") < result.index("</head>")
    assert result.count("<title>") == 1


def test_apply_seo_creates_head_when_missing() -> None:
    seo = SEOSettings(title="T")
    with_html = apply_seo("<html><body>x</body></html>", seo)
    assert with_html.startswith("<html>\n<head>\n<title>T</title>")

    fragment = apply_seo("<div>x</div>", seo)
    assert fragment.startswith("<!DOCTYPE html>")
    assert "<body>\n<div>x</div>\n</body>" in fragment


def test_apply_seo_is_stable_when_reapplied() -> None:
    seo = SEOSettings(title="T", description="D")
    once = apply_seo(make_html("Beans"), seo)
    assert apply_seo(once, seo) == once


def test_write_session_writes_complete_documents(tmp_path: Path) -> None:
    site = Site(
        id="site-1",
        name="Bakery",
        pages=(
            SitePage(id="p1", name="Home", slug="home", is_home=True, html=make_html("Home"), status=JobStatus.COMPLETE),
            SitePage(id="p2", name="About", slug="about", html="oops", status=JobStatus.ERROR),
        ),
    )
    session = Session(
        id="sess-1",
        prompt="coffee",
        mode="site",
        site=site,
        artifacts=(
            Artifact(id="a1", style_name="Warm Rustic", html=make_html("A1"), status=JobStatus.COMPLETE),
            Artifact(id="a2", style_name="Neon", html="partial", status=JobStatus.STREAMING),
            Artifact(
                id="a3",
                style_name="Bold & Vibrant",
                html=make_html("A3"),
                status=JobStatus.COMPLETE,
                seo=SEOSettings(title="Published"),
            ),
        ),
    )

    written = write_session(session, tmp_path)

    root = tmp_path / "sess-1"
    assert sorted(path.relative_to(root.resolve()).as_posix() for path in written) == [
        "1-warm-rustic.html",
        "3-bold-vibrant.html",
        "site/home.html",
    ]
    assert (root / "1-warm-rustic.html").read_text(encoding="utf-8") == make_html("A1")
    assert "<title>Published</title>" in (root / "3-bold-vibrant.html").read_text(encoding="utf-8")


def test_write_document_applies_seo(tmp_path: Path) -> None:
    target = write_document(tmp_path / "out" / "page.html", make_html("X"), SEOSettings(title="Hello"))
    assert "<title>Hello</title>" in target.read_text(encoding="utf-8")
