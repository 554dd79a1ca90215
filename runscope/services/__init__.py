"""
Service layer for the Runscope backend: the filter catalog, logic trees,
their SQL compiler and interpreter, and the radar scan job.
"""
