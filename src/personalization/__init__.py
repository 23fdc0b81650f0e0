"""Personalization engine for GlowRec.

This module contains the append-only activity ledger, the preference
aggregator that turns activity into weighted attribute scores, and the
candidate and similarity engines that build ranked product lists through
fallback tiers.
"""
