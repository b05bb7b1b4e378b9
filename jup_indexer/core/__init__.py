"""Trade extraction engine"""
