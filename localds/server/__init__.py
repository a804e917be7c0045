"""Local byte-range file server for datasets stored on disk.

Lets the dataset visualizer run offline by serving the files it would
otherwise download from a remote content host.
"""
