from markupsafe import Markup

from models.task import render_task_description_html


def test_issue_body_lists_keep_nesting():
    description = "Steps:\n\n- reproduce\n  - open the board\n  - drag a card"

    html = str(render_task_description_html(description))

    assert "<li>reproduce<ul>" in html
    assert "<li>open the board</li>" in html


def test_missing_description_renders_nothing():
    html = render_task_description_html("")

    assert isinstance(html, Markup)
    assert str(html) == ""


def test_script_and_event_handlers_are_stripped():
    html = str(render_task_description_html('<img src="x" onerror="alert(1)"><script>alert(1)</script>'))

    assert "<script" not in html.lower()
    assert "<img" not in html


def test_links_keep_href():
    html = str(render_task_description_html("[issue](https://github.com/octocat/hello-world/issues/1)"))

    assert 'href="https://github.com/octocat/hello-world/issues/1"' in html
