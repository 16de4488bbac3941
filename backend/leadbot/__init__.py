"""
LeadBot - lead-qualification conversation orchestrator
"""
