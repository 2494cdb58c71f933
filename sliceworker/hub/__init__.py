"""Reconcilers for slices, slice gateways and service imports assigned by the hub."""