"""Pure ranking engine: candles, buckets, indicators, rankings and analysis.

This package contains business logic only, with no I/O dependencies
(no database, Redis, or network access). The live service in app/
feeds it candles pulled from the exchange and publishes its output.
"""
