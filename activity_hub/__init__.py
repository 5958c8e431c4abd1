"""Real-time activity aggregation and notification engine.

The package is split the same way the service layer consuming it is: domain
entities, application use cases (normalizer, aggregator, counters, feed view
and the per-login session) and infrastructure adapters for the push transport,
the domain gateways and the durable read-state storage.
"""
