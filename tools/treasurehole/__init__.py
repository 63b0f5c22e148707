"""
Hole archiver – back up bookmarked hole posts into an offline archive.

Supports:
  • Walking the full bookmark (attention) list
  • Following #pid references breadth-first up to a set depth
  • Downloading every post and reply image
  • Writing data.js + images/ + a static index.html viewer
  • Packing the finished archive into a zip
"""
