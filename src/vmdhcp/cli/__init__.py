"""vmdhcp command line interface"""
