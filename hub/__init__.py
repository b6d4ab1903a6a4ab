"""Emergency hub application.

Holds the audit trail (model, background sink, read API) and the
realtime alert channel (wire envelopes, server consumer, client).
"""
