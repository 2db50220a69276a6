"""
Store endpoint constants and configuration.

This module contains the PostgREST paths, headers and filter syntax used to
talk to the Supabase store. Centralizing these values makes it easy to point
the service at another PostgREST deployment.
"""
from typing import Any, Iterable


# Supabase REST Endpoints
class SupabaseEndpoints:
    """Supabase/PostgREST endpoint paths."""
    
    # Base path of the auto-generated REST API
    REST_BASE = "/rest/v1"
    
    @classmethod
    def base_url(cls, project_url: str) -> str:
        """
        Get the REST base URL for a Supabase project.
        
        Args:
            project_url: Project URL, e.g. https://abc.supabase.co
            
        Returns:
            URL every table path is resolved against
        """
        return f"{project_url.rstrip('/')}{cls.REST_BASE}"
    
    @classmethod
    def table(cls, table_name: str) -> str:
        """
        Get the path of a table relative to the REST base URL.
        
        Args:
            table_name: Table name, e.g. TaskData
            
        Returns:
            Table path
        """
        return f"/{table_name}"


# PostgREST filter syntax
class PostgrestFilters:
    """Builders for PostgREST horizontal filters."""
    
    @staticmethod
    def eq(value: Any) -> str:
        if value is None:
            return "is.null"
        return f"eq.{value}"
    
    @staticmethod
    def in_(values: Iterable[Any]) -> str:
        # Values are double-quoted so keys containing commas or parentheses survive
        quoted = []
        for value in values:
            escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
            quoted.append(f'"{escaped}"')
        return f"in.({','.join(quoted)})"


# API Configuration Constants
class StoreConstants:
    """General store configuration constants."""
    
    # HTTP Headers
    CONTENT_TYPE_JSON = "application/json"
    PREFER_REPRESENTATION = "return=representation"
    PREFER_MINIMAL = "return=minimal"
    
    # PostgREST status for unique constraint violations
    CONFLICT_STATUS = 409
