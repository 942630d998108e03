"""Functional core of the store: paths, snapshots, validators, subscriptions and the Store itself."""
