""" Pure builders for the child resources of each OP Stack kind.

Builders take parsed specs and names and return complete Kubernetes objects
as dicts. They never talk to the cluster; see services.apply for that.
"""
