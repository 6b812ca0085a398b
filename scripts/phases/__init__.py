"""Phase orchestration scripts for the transit centrality analysis.

This module contains high-level orchestration scripts that coordinate
multiple analysis steps:
 - run_centrality_analysis.py: load stops/lines, build graphs, betweenness, maps
"""
