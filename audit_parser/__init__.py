"""
Audit Report Parser
===================
Structured extraction of compliance-audit reports from positioned PDF text.

Architecture:
    - Fragment Extractor: Reads positioned text spans from PDF pages
    - Line Reconstructor: Groups fragments into reading-order lines
    - Header Fields: Pulls store/visit metadata via ordered regex fallbacks
    - Score Summary: Resolves overall scores via a strategy cascade
    - Section Mapper: Maps question ids to their enclosing section
    - Non-Compliance Detector: Finds questions scored below maximum
    - Section Correlator: Back-fills section sub-scores for each finding
    - Report Validator: Diagnostics on what was (and was not) recovered

Version: 1.0.0
"""

__version__ = "1.0.0"
