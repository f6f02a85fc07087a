"""LCA Report Engine - Services"""
