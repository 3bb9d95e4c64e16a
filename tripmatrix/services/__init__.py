"""
Services package for external integrations.

Usage:
    from tripmatrix.services.canva import DesignGenerator, get_valid_access_token

Available services:
    - canva: Canva Connect authorization, tokens and design generation
    - canva_state_cleanup: background removal of expired authorization states
"""
