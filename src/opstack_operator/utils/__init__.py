"""Small helpers shared by controllers and builders."""
