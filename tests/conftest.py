"""Shared answer-key pages and test doubles."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from answerkey.models import SavedKeyFile


STRUCTURED_PAGE = """
<html><body>
<div class="main-info-pnl">
  <img src="//cdn.example.org/board-logo.png" alt="Board">
  <img src="/uploads/candidate_photo.jpg" alt="Photo">
  <table>
    <tr><td>Registration Number</td><td>REG2024001</td></tr>
    <tr><td>Candidate Name</td><td>Asha Verma</td></tr>
    <tr><td>Community</td><td>OBC</td></tr>
    <tr><td>Test Centre Name</td><td>iON Digital Zone Noida</td></tr>
    <tr><td>Test Date</td><td>15/06/2024</td></tr>
    <tr><td>Test Time</td><td>9:00 AM - 10:30 AM</td></tr>
    <tr><td>Subject</td><td>General Ability</td></tr>
  </table>
</div>
<div class="section-cntnr">
  <div class="section-lbl"><span class="bold">Mathematics</span></div>
  <div class="question-pnl">
    <table><tr><td class="rightAns">1. 42</td></tr></table>
    <table class="menu-tbl">
      <tr><td>Chosen Option :</td><td class="bold">1</td></tr>
      <tr><td>Status :</td><td class="bold">Answered</td></tr>
    </table>
  </div>
  <div class="question-pnl">
    <table><tr><td class="rightAns">2. 17</td></tr></table>
    <table class="menu-tbl">
      <tr><td>Chosen Option :</td><td class="bold">3</td></tr>
      <tr><td>Status :</td><td class="bold">Answered</td></tr>
    </table>
  </div>
</div>
<div class="section-cntnr">
  <div class="section-lbl"><span class="bold">Reasoning</span></div>
  <div class="question-pnl">
    <table><tr><td class="rightAns">4. Seven</td></tr></table>
    <table class="menu-tbl">
      <tr><td>Chosen Option :</td><td class="bold">4</td></tr>
      <tr><td>Status :</td><td class="bold">Answered</td></tr>
    </table>
  </div>
</div>
</body></html>
"""

TEXT_PAGE = """
<html><body><pre>
Response sheet
Question ID : 101
Chosen Option : 2
Correct Option : 2
Status : Answered
Question ID : 102
Chosen Option : --
Correct Option : 3
Status : Not Answered
Question ID : 103
Chosen Option : 1
Correct Option : 4
Status : Answered
</pre></body></html>
"""

TABLE_PAGE = """
<html><body>
<table>
  <tr><td>Notice</td><td>Chosen options are final</td></tr>
  <tr><th>Q.No</th><th>Chosen Option</th><th>Correct Option</th><th>Status</th></tr>
  <tr><td>1</td><td>A</td><td>A</td><td>Answered</td></tr>
  <tr><td>2</td><td>B</td><td>D</td><td>Answered</td></tr>
  <tr><td>3</td><td></td><td>C</td><td>Not Answered</td></tr>
</table>
</body></html>
"""

EMPTY_PAGE = "<html><body><p>Result will be published soon.</p></body></html>"


class MemoryStorage:
    """In-memory stand-in for FileSystemStorage."""

    def __init__(self):
        self.files: dict[str, str] = {}
        self.writes = 0
        self.reads = 0

    def exists(self, name: str) -> bool:
        return name in self.files

    def write(self, name: str, text: str):
        self.writes += 1
        self.files[name] = text

    def read(self, name: str) -> bytes:
        self.reads += 1
        try:
            return self.files[name].encode("utf-8")
        except KeyError:
            raise FileNotFoundError(name)

    def delete(self, name: str):
        try:
            del self.files[name]
        except KeyError:
            raise FileNotFoundError(name)

    def list(self) -> list[SavedKeyFile]:
        return [
            SavedKeyFile(name=name, size=len(text), created=f"2024-01-0{i + 1}T00:00:00+00:00")
            for i, (name, text) in enumerate(self.files.items())
        ]


def make_response(text: str = "", status_code: int = 200, content_type: str = "text/html; charset=utf-8",
                  content: bytes = None):
    response = MagicMock()
    response.ok = 200 <= status_code < 400
    response.status_code = status_code
    response.text = text
    response.content = content if content is not None else text.encode("utf-8")
    response.headers = {"Content-Type": content_type}
    response.encoding = "utf-8" if "charset=utf-8" in content_type else "ISO-8859-1"
    response.iter_content.return_value = [response.content]
    return response


@pytest.fixture
def memory_storage():
    return MemoryStorage()
