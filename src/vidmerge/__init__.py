"""vidmerge -- upload-to-merge video concatenation.

Stage uploaded clips in a working directory, write an ffmpeg concat
manifest in submission order, run ffmpeg, hand back the merged file,
and remove every transient artifact afterwards.
"""
