"""Core packaging, encryption and sync logic."""
