"""Predecessor dependencies.

Edges run predecessor -> successor. Every new edge is checked against the
current graph before it is committed, so the graph stays acyclic.
"""
