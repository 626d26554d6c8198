"""
feedback-insights core package.

Modules
───────
models      — Pydantic data models (FeedbackItem, AnalysisResult, Batch, …)
analyzer    — Claude-backed analysis of one feedback item + follow-up answers
batch       — payload validation, concurrent batch analysis, publication
store       — latest-batch reference and per-conversation session state
navigator   — per-session paging, keyword search and Q&A over the latest batch
dispatcher  — slash-command routing for the chat surface
cards       — Adaptive Card / markdown projection of an analysis result
"""
