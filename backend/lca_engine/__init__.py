"""LCA Report Engine - backend package"""
