"""
Answer Key Scorer
=================
Score calculator for officially published exam answer-key pages.

Architecture:
    - Fetcher: Downloads the answer-key HTML (15s timeout)
    - Extractors: Structured markup → raw text → table fallbacks
    - Section Detector: Derives section names and question counts
    - Scorer: Applies +1 / -1/3 / 0 marking with exact thirds
    - Redactor: Scrubs candidate details before archiving a copy
    - Archive: Write-once storage of sanitized answer keys

Version: 1.0.0
"""

__version__ = "1.0.0"
