"""
Novel reader core package.

This package currently focuses on the chapter content engine. It turns a
stored chapter body (structured editor JSON, HTML or plain text) into a
canonical list of blocks, renders addressable markup, paginates it for the
page-flip reader and keeps narration highlighting in sync with the text.
"""
