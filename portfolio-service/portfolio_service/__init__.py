"""
Portfolio Service - portfolio discovery and engagement
"""
