"""Example workloads: frontend and secondary HTTP services, Greeter gRPC service, sample script.

Each module exposes `main()` (console scripts `traceweave-frontend`,
`traceweave-secondary`, `traceweave-greeter`, `traceweave-sample`); the
HTTP services also expose `create_app()` for embedding and tests.
"""
