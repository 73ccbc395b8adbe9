"""Outbound email transports.

Both transports send one message per call and classify failures as
transient (retry may succeed) or permanent (retrying never will).  The
delivery worker decides what to do with each class.
"""
